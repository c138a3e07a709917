from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MatchData(_CamelModel):
    content_type: str
    content: str


class SubmitResponse(_CamelModel):
    status: str
    submission_id: str
    identity_token: str
    submission_time: datetime
    match_data: MatchData | None = None


class CheckResponse(_CamelModel):
    status: str
    match_data: MatchData | None = None


class RateLimitedResponse(_CamelModel):
    status: str = "rate_limited"
    message: str
    last_submission_time: datetime
    last_submission_id: str

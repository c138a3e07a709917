import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sensus.models.submission import utcnow
from sensus.repositories.base import AbstractSubmissionRepository

logger = logging.getLogger(__name__)


@dataclass
class Admission:
    admitted: bool
    last_submission_time: datetime | None = None
    last_submission_id: str | None = None


class RateLimiter:
    """
    One submission per identity token per cooldown window.

    The window is anchored to the identity's most recent submission. The check is a plain
    read-then-decide, so two near-simultaneous submissions from one identity can both pass.
    """

    def __init__(
        self,
        repository: AbstractSubmissionRepository,
        cooldown: timedelta = timedelta(hours=24),
    ) -> None:
        self._repository = repository
        self._cooldown = cooldown

    def check_and_admit(self, identity_token: str | None, now: datetime | None = None) -> Admission:
        if not identity_token:
            return Admission(admitted=True)

        latest = self._repository.latest_for_identity(identity_token)
        if latest is None:
            return Admission(admitted=True)

        now = now or utcnow()
        if latest.created_at > now - self._cooldown:
            logger.info(
                "[rate_limit] rejected | last_id=%s | last_at=%s",
                latest.id,
                latest.created_at.isoformat(),
            )
            return Admission(
                admitted=False,
                last_submission_time=latest.created_at,
                last_submission_id=latest.id,
            )
        return Admission(admitted=True)

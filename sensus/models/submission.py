import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

CONTENT_TYPES = {"text", "image", "audio"}

STATUS_UNMATCHED = "unmatched"
STATUS_MATCHED = "matched"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_submission_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Submission:
    content_type: str
    content: str
    identity_token: str
    emotional_tags: list[str] = field(default_factory=list)
    status: str = STATUS_UNMATCHED
    matched_with: str | None = None
    id: str = field(default_factory=new_submission_id)
    created_at: datetime = field(default_factory=utcnow)

    @property
    def is_matched(self) -> bool:
        return self.status == STATUS_MATCHED

    def mark_matched(self, partner_id: str) -> None:
        """Record the pairing on this side. Pairings are terminal."""
        if self.is_matched:
            raise ValueError(f"submission {self.id} is already matched with {self.matched_with}")
        self.status = STATUS_MATCHED
        self.matched_with = partner_id

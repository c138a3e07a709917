from abc import ABC, abstractmethod
from datetime import datetime

from sensus.models.submission import Submission


class AbstractSubmissionRepository(ABC):
    @abstractmethod
    def insert(self, submission: Submission) -> None:
        """Persist a new submission as-is."""

    @abstractmethod
    def get_by_id(self, submission_id: str) -> Submission | None:
        """Return the submission with the given id, or None."""

    @abstractmethod
    def latest_for_identity(self, identity_token: str) -> Submission | None:
        """Return the most recently created submission for an identity token, or None."""

    @abstractmethod
    def claim_candidate(
        self, submission: Submission, not_before: datetime | None = None
    ) -> Submission | None:
        """
        Atomically claim one waiting candidate for ``submission`` and persist ``submission``.

        A candidate is unmatched, belongs to a different identity and shares at least one
        emotional tag with ``submission``; the most recently created one wins. Claiming flips
        it to matched with ``matched_with = submission.id``. In the same step ``submission`` is
        stored, matched with the candidate when one was claimed and unmatched otherwise.
        Returns the candidate as it reads after the claim, or None.
        """

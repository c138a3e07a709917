import logging
from datetime import datetime, timedelta

from sensus.models.submission import Submission, utcnow
from sensus.repositories.base import AbstractSubmissionRepository

logger = logging.getLogger(__name__)


class MatchEngine:
    def __init__(
        self,
        repository: AbstractSubmissionRepository,
        max_candidate_age: timedelta | None = None,
    ) -> None:
        self._repository = repository
        self._max_candidate_age = max_candidate_age

    def try_pair(self, submission: Submission, now: datetime | None = None) -> Submission | None:
        """
        Pair a freshly tagged submission with one waiting candidate, or queue it.

        Either way the submission is persisted. On a match it is returned with the same
        pairing the store recorded; the claimed candidate is returned.
        """
        if not submission.emotional_tags:
            self._repository.insert(submission)
            logger.info("[match] no tags, queued | id=%s", submission.id)
            return None

        not_before = None
        if self._max_candidate_age is not None:
            not_before = (now or utcnow()) - self._max_candidate_age

        candidate = self._repository.claim_candidate(submission, not_before=not_before)
        if candidate is None:
            logger.info("[match] waiting | id=%s", submission.id)
            return None

        submission.mark_matched(candidate.id)
        shared = sorted(set(submission.emotional_tags) & set(candidate.emotional_tags))
        logger.info(
            "[match] paired | id=%s | partner=%s | shared=%s",
            submission.id,
            candidate.id,
            ",".join(shared),
        )
        return candidate

import asyncio
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime

from sensus.models.submission import Submission
from sensus.repositories.base import AbstractSubmissionRepository
from sensus.schemas.submission import CheckResponse, MatchData, SubmitResponse
from sensus.services.classifier_service import ContentClassifier
from sensus.services.match_service import MatchEngine
from sensus.services.media_storage import MediaStorage, content_type_for
from sensus.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class NoContentSubmitted(Exception):
    pass


class SubmissionNotFound(Exception):
    pass


class SubmissionRateLimited(Exception):
    def __init__(self, last_submission_time: datetime, last_submission_id: str) -> None:
        super().__init__("You can only submit once every 24 hours.")
        self.last_submission_time = last_submission_time
        self.last_submission_id = last_submission_id


@dataclass
class Upload:
    filename: str
    mime_type: str | None
    data: bytes


def new_identity_token() -> str:
    return secrets.token_hex(16)


def _match_data(submission: Submission) -> MatchData:
    return MatchData(content_type=submission.content_type, content=submission.content)


class SubmissionService:
    def __init__(
        self,
        repository: AbstractSubmissionRepository,
        classifier: ContentClassifier,
        rate_limiter: RateLimiter,
        match_engine: MatchEngine,
        media_storage: MediaStorage,
    ) -> None:
        self._repository = repository
        self._classifier = classifier
        self._rate_limiter = rate_limiter
        self._match_engine = match_engine
        self._media_storage = media_storage

    async def _build_submission(
        self, text: str | None, upload: Upload | None, identity_token: str
    ) -> Submission:
        if text:
            return Submission(content_type="text", content=text, identity_token=identity_token)
        path = await asyncio.to_thread(self._media_storage.save, upload.filename, upload.data)
        return Submission(
            content_type=content_type_for(upload.mime_type),
            content=path,
            identity_token=identity_token,
        )

    async def submit(
        self,
        text: str | None,
        upload: Upload | None,
        identity_token: str | None,
    ) -> SubmitResponse:
        """
        Rate-limit, classify and pair one submission.

        Raises NoContentSubmitted when there is neither text nor a file, and
        SubmissionRateLimited when the identity submitted inside the cooldown window.
        """
        text = text if text and text.strip() else None
        if text is None and upload is None:
            raise NoContentSubmitted("No content submitted.")

        admission = await asyncio.to_thread(self._rate_limiter.check_and_admit, identity_token)
        if not admission.admitted:
            raise SubmissionRateLimited(admission.last_submission_time, admission.last_submission_id)

        identity_token = identity_token or new_identity_token()
        submission = await self._build_submission(text, upload, identity_token)

        classification = await self._classifier.classify(submission)
        submission.emotional_tags = classification.tags

        if classification.failed:
            # Sentinel tags are not emotions; keep the submission but do not pair on them.
            await asyncio.to_thread(self._repository.insert, submission)
            logger.warning(
                "[submit] classification %s, pairing deferred | id=%s",
                classification.outcome.value,
                submission.id,
            )
            match = None
        else:
            match = await asyncio.to_thread(self._match_engine.try_pair, submission)

        if match is None:
            logger.info("[submit] waiting | id=%s | type=%s", submission.id, submission.content_type)
            return SubmitResponse(
                status="waiting",
                submission_id=submission.id,
                identity_token=identity_token,
                submission_time=submission.created_at,
            )

        logger.info("[submit] matched | id=%s | partner=%s", submission.id, match.id)
        return SubmitResponse(
            status="matched",
            submission_id=submission.id,
            identity_token=identity_token,
            submission_time=submission.created_at,
            match_data=_match_data(match),
        )

    async def check_status(self, submission_id: str) -> CheckResponse:
        submission = await asyncio.to_thread(self._repository.get_by_id, submission_id)
        if submission is None:
            raise SubmissionNotFound(f"Submission not found: {submission_id}")

        if not submission.is_matched:
            return CheckResponse(status="waiting")

        partner = await asyncio.to_thread(self._repository.get_by_id, submission.matched_with)
        if partner is None:
            logger.error(
                "[check] partner missing | id=%s | matched_with=%s",
                submission.id,
                submission.matched_with,
            )
            return CheckResponse(status="waiting")
        return CheckResponse(status="matched", match_data=_match_data(partner))

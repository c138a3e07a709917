import asyncio
import base64
import logging
import mimetypes
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import httpx

from sensus.models.submission import Submission

logger = logging.getLogger(__name__)

PROMPT_SUFFIX = (
    "provide a concise emotional summary as a comma-separated list of 5-10 keywords "
    "(e.g., hopeful, melancholic, serene, chaotic, joyful)"
)

AUDIO_PLACEHOLDER_TAGS = ["neutral"]
OVERLOADED_TAGS = ["overloaded"]
ERROR_TAG = "error"

_OVERLOAD_SIGNAL = "overloaded"
_BACKOFF_FACTOR = 3


class ClassificationOutcome(Enum):
    SUCCESS = "success"
    DEGRADED = "degraded"
    OVERLOADED = "overloaded"
    ERROR = "error"


@dataclass
class Classification:
    tags: list[str]
    outcome: ClassificationOutcome
    attempts: int = 0

    @property
    def failed(self) -> bool:
        return self.outcome in (ClassificationOutcome.OVERLOADED, ClassificationOutcome.ERROR)


def parse_keywords(summary: str) -> list[str]:
    """Split a comma-separated model reply into trimmed, lowercased keywords."""
    keywords = []
    for raw in summary.split(","):
        keyword = raw.strip().strip(".\"'").strip().lower()
        if keyword:
            keywords.append(keyword)
    return keywords


def _error_message(exc: Exception) -> str:
    # The overload signal arrives in the 503 body. str(HTTPStatusError) embeds the request URL,
    # so only the status code and body are kept.
    if isinstance(exc, httpx.HTTPStatusError):
        return f"HTTP {exc.response.status_code}: {exc.response.text}".strip()
    return str(exc) or type(exc).__name__


class ContentClassifier:
    """Tags submissions with emotion keywords using the Gemini generateContent API."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-flash",
        api_base: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 30.0,
        max_attempts: int = 3,
        base_delay: float = 1.0,
    ) -> None:
        self._api_key = api_key
        self._url = f"{api_base.rstrip('/')}/models/{model}:generateContent"
        self._timeout = timeout
        self._max_attempts = max(1, max_attempts)
        self._base_delay = base_delay

    async def _build_request(self, submission: Submission) -> dict:
        if submission.content_type == "text":
            parts = [{"text": f'Analyze the following text and {PROMPT_SUFFIX}: "{submission.content}"'}]
        else:
            image_bytes = await asyncio.to_thread(Path(submission.content).read_bytes)
            mime_type = mimetypes.guess_type(submission.content)[0] or "image/jpeg"
            parts = [
                {"text": f"Analyze the following image and {PROMPT_SUFFIX}."},
                {
                    "inline_data": {
                        "mime_type": mime_type,
                        "data": base64.b64encode(image_bytes).decode("ascii"),
                    }
                },
            ]
        return {"contents": [{"parts": parts}]}

    async def _generate(self, body: dict) -> str:
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(
                self._url, headers={"x-goog-api-key": self._api_key}, json=body
            )
            response.raise_for_status()
            data = response.json()
        return data["candidates"][0]["content"]["parts"][0]["text"]

    def _failure(self, submission: Submission, message: str, attempts: int) -> Classification:
        logger.error(
            "[classifier] request failed | id=%s | attempt=%d | error=%s",
            submission.id,
            attempts,
            message,
        )
        return Classification([ERROR_TAG, message], ClassificationOutcome.ERROR, attempts)

    async def classify(self, submission: Submission) -> Classification:
        """
        Return emotion tags for a submission. Never raises.

        Overloaded replies are retried up to max_attempts times, sleeping base_delay and then
        three times longer after each further overloaded attempt. Exhausted retries yield
        ["overloaded"]; any other failure yields ["error", <message>].
        """
        if submission.content_type == "audio":
            logger.info("[classifier] audio analysis not implemented | id=%s", submission.id)
            return Classification(list(AUDIO_PLACEHOLDER_TAGS), ClassificationOutcome.DEGRADED)

        try:
            body = await self._build_request(submission)
        except Exception as exc:
            return self._failure(submission, _error_message(exc), attempts=0)

        delay = self._base_delay
        for attempt in range(1, self._max_attempts + 1):
            try:
                summary = await self._generate(body)
            except Exception as exc:
                message = _error_message(exc)
                if _OVERLOAD_SIGNAL not in message.lower():
                    return self._failure(submission, message, attempt)
                if attempt == self._max_attempts:
                    break
                logger.warning(
                    "[classifier] overloaded | id=%s | attempt=%d/%d | retry_in=%.1fs",
                    submission.id,
                    attempt,
                    self._max_attempts,
                    delay,
                )
                await asyncio.sleep(delay)
                delay *= _BACKOFF_FACTOR
                continue

            tags = parse_keywords(summary)
            if not tags:
                return self._failure(submission, "classifier reply contained no keywords", attempt)
            logger.info(
                "[classifier] tagged | id=%s | attempt=%d | tags=%s",
                submission.id,
                attempt,
                ",".join(tags),
            )
            return Classification(tags, ClassificationOutcome.SUCCESS, attempt)

        logger.warning(
            "[classifier] still overloaded after %d attempts | id=%s", self._max_attempts, submission.id
        )
        return Classification(list(OVERLOADED_TAGS), ClassificationOutcome.OVERLOADED, self._max_attempts)

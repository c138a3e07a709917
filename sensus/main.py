import logging
from contextlib import asynccontextmanager
from datetime import timedelta

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sensus.api.routes import router
from sensus.config import Settings, settings
from sensus.db.connection import run_migrations
from sensus.repositories.submission_repository import SubmissionRepository
from sensus.schemas.submission import RateLimitedResponse
from sensus.services.classifier_service import ContentClassifier
from sensus.services.match_service import MatchEngine
from sensus.services.media_storage import MediaStorage
from sensus.services.rate_limiter import RateLimiter
from sensus.services.submission_service import (
    NoContentSubmitted,
    SubmissionNotFound,
    SubmissionRateLimited,
    SubmissionService,
)


def _configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_submission_service(config: Settings, repository: SubmissionRepository) -> SubmissionService:
    classifier = ContentClassifier(
        api_key=config.GEMINI_API_KEY,
        model=config.GEMINI_MODEL,
        api_base=config.GEMINI_API_BASE,
        timeout=config.CLASSIFIER_TIMEOUT,
        max_attempts=config.CLASSIFIER_MAX_ATTEMPTS,
        base_delay=config.CLASSIFIER_BASE_DELAY,
    )
    max_age = None
    if config.MATCH_MAX_CANDIDATE_AGE_MINUTES > 0:
        max_age = timedelta(minutes=config.MATCH_MAX_CANDIDATE_AGE_MINUTES)
    return SubmissionService(
        repository=repository,
        classifier=classifier,
        rate_limiter=RateLimiter(repository, timedelta(hours=config.SUBMISSION_COOLDOWN_HOURS)),
        match_engine=MatchEngine(repository, max_candidate_age=max_age),
        media_storage=MediaStorage(config.UPLOAD_DIR),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    _configure_logging()
    logger = logging.getLogger(__name__)
    logger.info("Sensus starting | db=%s | port=%s", settings.DB_PATH, settings.PORT)
    if not settings.GEMINI_API_KEY:
        logger.error("GEMINI_API_KEY is not set; submissions will be tagged with the error sentinel")
    run_migrations(settings.DB_PATH)
    app.state.repository = SubmissionRepository(settings.DB_PATH)
    app.state.submission_service = build_submission_service(settings, app.state.repository)
    yield
    logger.info("Sensus shutting down")


def create_app() -> FastAPI:
    app = FastAPI(title="Sensus", version="1.0.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(router)

    @app.exception_handler(NoContentSubmitted)
    async def no_content_handler(request: Request, exc: NoContentSubmitted) -> JSONResponse:
        return JSONResponse(status_code=400, content={"status": "error", "message": str(exc)})

    @app.exception_handler(SubmissionNotFound)
    async def not_found_handler(request: Request, exc: SubmissionNotFound) -> JSONResponse:
        return JSONResponse(status_code=404, content={"status": "error", "message": "Submission not found"})

    @app.exception_handler(SubmissionRateLimited)
    async def rate_limited_handler(request: Request, exc: SubmissionRateLimited) -> JSONResponse:
        body = RateLimitedResponse(
            message=str(exc),
            last_submission_time=exc.last_submission_time,
            last_submission_id=exc.last_submission_id,
        )
        return JSONResponse(status_code=429, content=body.model_dump(mode="json", by_alias=True))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logging.getLogger(__name__).exception("Unhandled exception")
        return JSONResponse(
            status_code=500,
            content={"status": "error", "message": "Internal server error"},
        )

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("sensus.main:app", host="0.0.0.0", port=settings.PORT, log_level=settings.LOG_LEVEL)

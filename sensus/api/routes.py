import logging

from fastapi import APIRouter, File, Form, Request, UploadFile

from sensus.schemas.submission import CheckResponse, SubmitResponse
from sensus.services.submission_service import Upload

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health() -> dict:
    return {"status": "ok"}


@router.post("/api/submit", response_model=SubmitResponse, response_model_exclude_none=True)
async def submit(
    request: Request,
    text: str | None = Form(None),
    file: UploadFile | None = File(None),
    identity_token: str | None = Form(None, alias="identityToken"),
) -> SubmitResponse:
    upload = None
    if file is not None and file.filename:
        upload = Upload(filename=file.filename, mime_type=file.content_type, data=await file.read())

    return await request.app.state.submission_service.submit(text, upload, identity_token)


@router.get(
    "/api/check/{submission_id}", response_model=CheckResponse, response_model_exclude_none=True
)
async def check(submission_id: str, request: Request) -> CheckResponse:
    return await request.app.state.submission_service.check_status(submission_id)

import asyncio
import logging
from typing import NoReturn

from fastapi import APIRouter, File, Form, HTTPException, Request, UploadFile, status
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from app.ai.types import GenerationError, MalformedResultError, OverloadedError
from app.core.application_store import ApplicationStore
from app.core.config import settings
from app.core.rate_limit import generation_rate_limit
from app.parsing.extract import ExtractionError, extract_text
from app.schemas.applications import (
    ApplicationRecord,
    ATSAnalysis,
    JobContext,
    OptimizationResult,
    UploadResponse,
)
from app.services.analysis_service import AnalysisService
from app.services.file_security import (
    UPLOAD_CHUNK_BYTES,
    UploadedDocument,
    UploadRejectedError,
    resolve_media_type,
    validate_media_type,
    validate_upload_signature,
    validate_upload_size,
)
from app.services.optimization_service import OptimizationService
from app.services.reports import DOWNLOADABLE_DOCUMENTS, download_filename, render_document

logger = logging.getLogger(__name__)

router = APIRouter()

NOT_FOUND_MESSAGE = "Job application not found"
MIN_JOB_DESCRIPTION_CHARS = 50

FIELD_LABELS = {
    "companyName": "Company name",
    "company_name": "Company name",
    "roleTitle": "Role title",
    "role_title": "Role title",
    "jobDescription": "Job description",
    "job_description": "Job description",
}


def _store(request: Request) -> ApplicationStore:
    return request.app.state.application_store


def _analysis(request: Request) -> AnalysisService:
    return request.app.state.analysis_service


def _optimization(request: Request) -> OptimizationService:
    return request.app.state.optimization_service


def _bad_request(message: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=NOT_FOUND_MESSAGE)


def _raise_generation_http_error(exc: GenerationError, fallback: str) -> NoReturn:
    if isinstance(exc, OverloadedError):
        detail = str(exc)
    elif isinstance(exc, MalformedResultError):
        detail = f"{fallback}: the AI service returned an unexpected response."
    else:
        detail = f"{fallback}. Please try again."
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail) from exc


def _job_context_error_message(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid job details."
    first = errors[0]
    loc = first.get("loc") or ()
    field = FIELD_LABELS.get(str(loc[-1]), "") if loc else ""
    if first.get("type") == "string_too_short":
        min_length = (first.get("ctx") or {}).get("min_length", 1)
        if min_length <= 1:
            return f"{field or 'Field'} is required"
        return f"{field or 'Field'} must be at least {min_length} characters"
    if field:
        return f"{field}: {first.get('msg', 'invalid value')}"
    return f"Invalid job details: {first.get('msg', 'invalid value')}"


def _parse_job_context(raw: str | None) -> JobContext:
    try:
        return JobContext.model_validate_json(raw or "{}")
    except ValidationError as exc:
        raise _bad_request(_job_context_error_message(exc)) from exc


async def _read_upload(file: UploadFile, max_bytes: int) -> UploadedDocument:
    filename = file.filename or "resume"
    media_type = resolve_media_type(file.content_type, filename)
    validate_media_type(media_type)

    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await file.read(UPLOAD_CHUNK_BYTES)
        if not chunk:
            break
        total += len(chunk)
        validate_upload_size(total, max_bytes)
        chunks.append(chunk)
    content = b"".join(chunks)
    validate_upload_signature(media_type=media_type, content=content)
    return UploadedDocument(content=content, media_type=media_type, size_bytes=total, filename=filename)


async def _receive_document(file: UploadFile | None) -> UploadedDocument:
    if file is None:
        raise _bad_request("No resume file uploaded")
    try:
        return await _read_upload(file, settings.max_upload_bytes)
    except UploadRejectedError as exc:
        logger.info("upload_rejected filename=%s reason=%s", file.filename, exc)
        raise _bad_request(str(exc)) from exc
    finally:
        await file.close()


async def _extract(document: UploadedDocument) -> str:
    try:
        return await asyncio.to_thread(extract_text, document.content, document.media_type)
    except ExtractionError as exc:
        logger.info("extraction_failed filename=%s code=%s", document.filename, exc.code)
        raise _bad_request(str(exc)) from exc


def _preview(text: str) -> str:
    limit = settings.resume_preview_chars
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


@router.post("/upload-resume", response_model=UploadResponse)
@router.post("/upload", response_model=UploadResponse, include_in_schema=False)
async def upload_resume(
    request: Request,
    resume: UploadFile | None = File(default=None),
    job_details: str | None = Form(default=None, alias="jobDetails"),
):
    document = await _receive_document(resume)
    job = _parse_job_context(job_details)
    resume_text = await _extract(document)

    record = _store(request).create(
        job=job,
        original_resume_text=resume_text,
        original_resume_filename=document.filename,
    )
    logger.info(
        "resume_uploaded application_id=%s size_bytes=%s chars=%s",
        record.id,
        document.size_bytes,
        len(resume_text),
    )
    return UploadResponse(application_id=record.id, resume_text_preview=_preview(resume_text))


@router.post("/analyze-original/{application_id}", response_model=ATSAnalysis)
@generation_rate_limit()
async def analyze_original(request: Request, application_id: str):
    store = _store(request)
    record = store.get(application_id)
    if record is None:
        raise _not_found()

    try:
        analysis = await _analysis(request).analyze(record.original_resume_text, record.job_description)
    except GenerationError as exc:
        _raise_generation_http_error(exc, "Failed to analyze resume")

    updated = store.update(
        application_id,
        original_ats_score=analysis.score,
        matched_keywords=analysis.matched_keywords,
        missing_keywords=analysis.missing_keywords,
        recommendations=analysis.recommendations,
    )
    if updated is None:
        raise _not_found()
    return analysis


@router.post("/optimize/{application_id}", response_model=OptimizationResult)
@generation_rate_limit()
async def optimize_application(request: Request, application_id: str):
    store = _store(request)
    record = store.get(application_id)
    if record is None:
        raise _not_found()

    try:
        outcome = await _optimization(request).optimize(
            record.original_resume_text,
            record.job_description,
            record.company_name,
            record.role_title,
        )
    except GenerationError as exc:
        _raise_generation_http_error(exc, "Failed to optimize resume and generate cover letter")

    updated = store.update(
        application_id,
        optimized_resume=outcome.optimized_resume,
        cover_letter=outcome.cover_letter,
        optimized_ats_score=outcome.optimized_analysis.score,
    )
    if updated is None:
        raise _not_found()

    return OptimizationResult(
        optimized_resume=outcome.optimized_resume,
        cover_letter=outcome.cover_letter,
        original_analysis=record.original_analysis(),
        optimized_analysis=outcome.optimized_analysis,
    )


@router.post("/scan-resume", response_model=ATSAnalysis)
@generation_rate_limit()
async def scan_resume(
    request: Request,
    resume: UploadFile | None = File(default=None),
    job_description: str | None = Form(default=None, alias="jobDescription"),
):
    document = await _receive_document(resume)
    description = (job_description or "").strip()
    if len(description) < MIN_JOB_DESCRIPTION_CHARS:
        raise _bad_request(f"Job description must be at least {MIN_JOB_DESCRIPTION_CHARS} characters")
    resume_text = await _extract(document)

    try:
        return await _analysis(request).analyze(resume_text, description)
    except GenerationError as exc:
        _raise_generation_http_error(exc, "Failed to analyze resume")


@router.get("/application/{application_id}", response_model=ApplicationRecord)
async def get_application(request: Request, application_id: str):
    record = _store(request).get(application_id)
    if record is None:
        raise _not_found()
    return record


@router.get("/application/{application_id}/download/{document}", response_class=PlainTextResponse)
async def download_document(request: Request, application_id: str, document: str):
    if document not in DOWNLOADABLE_DOCUMENTS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown document. Available: {', '.join(DOWNLOADABLE_DOCUMENTS)}.",
        )
    record = _store(request).get(application_id)
    if record is None:
        raise _not_found()

    content = render_document(record, document)
    if not content:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="This document has not been generated yet.",
        )
    filename = download_filename(record, document)
    return PlainTextResponse(
        content,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

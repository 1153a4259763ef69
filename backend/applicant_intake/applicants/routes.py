"""Résumé submission and retrieval routes."""

import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import Settings
from ..dependencies import get_blob_store, get_db, get_settings
from ..storage.blob_store import BlobStore
from .schemas import ResumeUpload, SubmissionErrors, SubmissionInput
from .service import create_applicant, get_applicant
from .validation import validate_submission

logger = logging.getLogger(__name__)

router = APIRouter(tags=["resume"])

SIGNUP_OK = "Signup successful!"
SIGNUP_FAILED = "Signup failed. Please try again."
NOT_FOUND = "User not found"
RETRIEVAL_FAILED = "Error retrieving resume"


@router.post("/resume")
def submit_resume(
    name: str = Form(""),
    phone_no: str = Form("", alias="phoneNo"),
    email: str = Form(""),
    resume: UploadFile | None = File(None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    blobs: BlobStore = Depends(get_blob_store),
):
    data = SubmissionInput(
        name=name,
        phone_no=phone_no,
        email=email,
        resume=ResumeUpload(filename=resume.filename or "", size=resume.size) if resume else None,
    )
    result = validate_submission(
        data,
        allowed_extensions=settings.allowed_resume_extensions_list,
        max_bytes=settings.max_resume_bytes,
    )
    if not result.ok:
        logger.info("Submission rejected: %s", ", ".join(e.path for e in result.errors))
        return JSONResponse(SubmissionErrors(errors=result.errors).model_dump(), status_code=400)

    submission = result.value
    try:
        stored = blobs.save(resume.file, submission.resume_filename)
    except OSError:
        logger.exception("Could not store resume %s", submission.resume_filename)
        return PlainTextResponse(SIGNUP_FAILED, status_code=500)

    try:
        applicant = create_applicant(db, submission, str(stored))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not create applicant record for %s", submission.email)
        blobs.delete(stored)
        return PlainTextResponse(SIGNUP_FAILED, status_code=500)

    logger.info("Applicant %s created, resume at %s", applicant.id, stored)
    return PlainTextResponse(SIGNUP_OK, headers={"Location": f"/resume/{applicant.id}"})


@router.get("/resume/{applicant_id}")
def download_resume(
    applicant_id: str,
    db: Session = Depends(get_db),
    blobs: BlobStore = Depends(get_blob_store),
):
    try:
        applicant = get_applicant(db, applicant_id)
    except (ValueError, SQLAlchemyError):
        # Malformed ids land here too and are reported as a server error.
        logger.exception("Lookup failed for applicant id %r", applicant_id)
        return PlainTextResponse(RETRIEVAL_FAILED, status_code=500)

    if applicant is None:
        return PlainTextResponse(NOT_FOUND, status_code=404)

    path = blobs.resolve(applicant.resume_path)
    if not path.is_file():
        logger.error("Resume for applicant %s missing at %s", applicant.id, path)
        return PlainTextResponse(RETRIEVAL_FAILED, status_code=500)
    return FileResponse(path)

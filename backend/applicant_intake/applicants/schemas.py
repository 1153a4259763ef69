"""Applicant submission schemas."""

from pydantic import BaseModel, Field


class ResumeUpload(BaseModel):
    """What validation needs to know about the uploaded résumé file."""

    filename: str = ""
    size: int | None = None


class SubmissionInput(BaseModel):
    """Raw form fields as received, before any trimming or escaping."""

    name: str = ""
    phone_no: str = ""
    email: str = ""
    resume: ResumeUpload | None = None


class ValidatedSubmission(BaseModel):
    name: str = Field(..., min_length=1)
    phone_no: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    resume_filename: str = Field(..., min_length=1)


class FieldError(BaseModel):
    type: str = "field"
    value: str = ""
    msg: str
    path: str
    location: str = "body"


class SubmissionErrors(BaseModel):
    errors: list[FieldError]

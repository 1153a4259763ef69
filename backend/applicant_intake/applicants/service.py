"""Applicant record service: create and lookup."""

from uuid import UUID

from sqlalchemy.orm import Session

from .models import Applicant
from .schemas import ValidatedSubmission


def create_applicant(db: Session, submission: ValidatedSubmission, resume_path: str) -> Applicant:
    """Insert a new applicant. Flushes so unique-email violations raise here."""
    applicant = Applicant(
        name=submission.name,
        phone_no=submission.phone_no,
        email=submission.email,
        resume_path=resume_path,
    )
    db.add(applicant)
    db.flush()
    return applicant


def get_applicant(db: Session, applicant_id: str) -> Applicant | None:
    """Look up an applicant by id.

    Raises ValueError if ``applicant_id`` is not a UUID.
    """
    uid = UUID(applicant_id)
    return db.query(Applicant).filter(Applicant.id == uid).first()

"""Shared test fixtures."""

import io
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from applicant_intake.applicants.models import Applicant
from applicant_intake.config import Settings
from applicant_intake.database.base import Base, create_db_engine
from applicant_intake.main import create_app

# Models must be imported so Base.metadata.create_all() sees all tables.
_ALL_MODELS = [Applicant]

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\n%%EOF\n"


def make_settings(tmp_path, **overrides) -> Settings:
    values = {
        "database_url": "sqlite://",
        "upload_dir": str(tmp_path / "uploads"),
        "auto_migrate": False,
        "configure_logging": False,
        "rate_limit_enabled": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def engine(settings):
    """In-memory SQLite database shared by the app and the test session."""
    engine = create_db_engine(settings)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def db_session(engine):
    TestSession = sessionmaker(bind=engine)
    session = TestSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(settings, engine):
    app = create_app(settings, engine=engine)
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client


@pytest.fixture
def upload_dir(settings):
    return Path(settings.upload_dir)


def resume_form(
    name="Jane Doe",
    phone_no="555-1234",
    email="Jane.Doe@Example.com",
    filename="cv.pdf",
    content=PDF_BYTES,
    content_type="application/pdf",
):
    """Build (data, files) for a POST /resume call."""
    data = {"name": name, "phoneNo": phone_no, "email": email}
    files = {"resume": (filename, io.BytesIO(content), content_type)}
    return data, files


@pytest.fixture
def make_form():
    return resume_form

"""Shared FastAPI dependencies.

Everything a handler needs is built once in ``create_app`` and kept on
``app.state``; these accessors hand it to the routes.
"""

from fastapi import Request

from .config import Settings
from .database import get_db
from .storage.blob_store import BlobStore

__all__ = ["get_blob_store", "get_db", "get_settings"]


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store

"""Applicant intake service: résumé submissions and retrieval over HTTP."""

__version__ = "1.0.0"

"""
App assembly entry point.

Re-exports the FastAPI `app` from `compliance.api.main` for ASGI servers
(`uvicorn app:app`).
"""

from compliance.api.main import app  # noqa: F401

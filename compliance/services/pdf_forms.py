"""
AcroForm field extraction and filling with pypdf.
"""
from __future__ import annotations

import io
import logging
from typing import Any, Dict, List, Mapping, Optional

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError

logger = logging.getLogger(__name__)

FIELD_FLAG_REQUIRED = 1 << 1
FIELD_FLAG_RADIO = 1 << 15
FIELD_FLAG_PUSHBUTTON = 1 << 16

CHECKBOX_TRUE_VALUES = ("true", "yes", "1", "on", "x")

PDF_ERRORS = (PyPdfError, ValueError, KeyError, TypeError)


def _field_type(field: Mapping[str, Any]) -> Optional[str]:
    ft = field.get("/FT")
    flags = int(field.get("/Ff", 0) or 0)
    if ft == "/Tx":
        return "text"
    if ft == "/Sig":
        return "signature"
    if ft == "/Ch":
        return "dropdown"
    if ft == "/Btn":
        if flags & FIELD_FLAG_PUSHBUTTON:
            return None
        return "radio" if flags & FIELD_FLAG_RADIO else "checkbox"
    return None


def _option_label(option: Any) -> str:
    # /Opt entries are either plain strings or [export, display] pairs
    if isinstance(option, (list, tuple)) and option:
        return str(option[-1])
    return str(option)


def _states(field: Mapping[str, Any]) -> List[str]:
    return [str(s).lstrip("/") for s in field.get("/_States_", []) if str(s) != "/Off"]


def _describe(name: str, field: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    field_type = _field_type(field)
    if field_type is None:
        return None
    options = None
    if field_type == "dropdown":
        options = [_option_label(o) for o in field.get("/Opt", [])]
    elif field_type == "radio":
        options = _states(field)
    value = field.get("/V")
    default = str(value).lstrip("/") if value not in (None, "", "/Off") else None
    return {
        "name": name,
        "type": field_type,
        "options": options,
        "required": bool(int(field.get("/Ff", 0) or 0) & FIELD_FLAG_REQUIRED),
        "default_value": default,
    }


def _read_fields(reader: PdfReader) -> Dict[str, Mapping[str, Any]]:
    return reader.get_fields() or {}


def is_readable_pdf(pdf_bytes: bytes) -> bool:
    try:
        reader = PdfReader(io.BytesIO(pdf_bytes))
        len(reader.pages)
    except PDF_ERRORS as e:
        logger.info("Rejected unreadable PDF: %s", e)
        return False
    return True


def extract_form_fields(pdf_bytes: bytes) -> List[Dict[str, Any]]:
    """Describe each fillable field; an unreadable PDF yields ``[]``."""
    try:
        raw_fields = _read_fields(PdfReader(io.BytesIO(pdf_bytes)))
    except PDF_ERRORS as e:
        logger.warning("Could not read PDF form fields: %s", e)
        return []
    fields = []
    for name, field in raw_fields.items():
        described = _describe(name, field)
        if described is not None:
            fields.append(described)
    return fields


def _match_option(value: str, options: List[str]) -> Optional[str]:
    wanted = value.strip().lower()
    for option in options:
        if option.lower() == wanted:
            return option
    return None


def fill_pdf_form(pdf_bytes: bytes, values: Mapping[str, str]) -> Dict[str, Any]:
    """Fill ``values`` into the PDF's form.

    Returns ``{content, filled_fields, skipped_fields, signature_fields,
    warnings}``. Signature fields are never filled; choice values that
    match no option are skipped with a warning.
    """
    reader = PdfReader(io.BytesIO(pdf_bytes))
    raw_fields = _read_fields(reader)
    updates: Dict[str, str] = {}
    filled: List[str] = []
    skipped: List[str] = []
    signatures: List[str] = []
    warnings: List[str] = []

    for name, field in raw_fields.items():
        field_type = _field_type(field)
        if field_type is None:
            continue
        if field_type == "signature":
            signatures.append(name)
            continue
        value = values.get(name)
        if value is None or str(value) == "":
            skipped.append(name)
            continue
        value = str(value)

        if field_type == "text":
            updates[name] = value
        elif field_type == "checkbox":
            on_state = next(iter(_states(field)), "Yes")
            checked = value.strip().lower() in CHECKBOX_TRUE_VALUES
            updates[name] = f"/{on_state}" if checked else "/Off"
        else:
            options = (
                [_option_label(o) for o in field.get("/Opt", [])]
                if field_type == "dropdown"
                else _states(field)
            )
            match = _match_option(value, options)
            if match is None:
                warnings.append(f'Value "{value}" not in options for field "{name}"')
                skipped.append(name)
                continue
            updates[name] = f"/{match}" if field_type == "radio" else match
        filled.append(name)

    writer = PdfWriter(clone_from=reader)
    if updates:
        for page in writer.pages:
            writer.update_page_form_field_values(page, updates, auto_regenerate=False)
        writer.set_need_appearances_writer(True)
    buffer = io.BytesIO()
    writer.write(buffer)

    return {
        "content": buffer.getvalue(),
        "filled_fields": filled,
        "skipped_fields": skipped,
        "signature_fields": signatures,
        "warnings": warnings,
    }

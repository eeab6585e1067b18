"""
Match classified form fields to organization profile values.

Fields arrive as ``{"field_name", "semantic_type", "confidence"}`` dicts
(the shape returned by the field classifier). Profile paths look like
``addresses[0].street`` and are resolved against a profile dict.
"""
from __future__ import annotations

import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

SEMANTIC_TYPES = (
    "business_name",
    "ein",
    "address_street",
    "address_city",
    "address_state",
    "address_zip",
    "address_country",
    "phone",
    "fax",
    "email",
    "website",
    "license_number",
    "npi_number",
    "officer_name",
    "officer_title",
    "date",
    "signature",
    "other",
)

CONFIDENCE_LEVELS = ("high", "medium", "low")

SEMANTIC_TO_PROFILE_KEY: Dict[str, Optional[str]] = {
    "business_name": "legal_name",
    "ein": "ein",
    "address_street": "addresses[0].street",
    "address_city": "addresses[0].city",
    "address_state": "addresses[0].state",
    "address_zip": "addresses[0].zip",
    "address_country": "addresses[0].country",
    "phone": "phones[0].number",
    "fax": None,
    "email": "emails[0].address",
    "website": "website",
    "license_number": "license_numbers[0].number",
    "npi_number": "npi_number",
    "officer_name": "officers[0].name",
    "officer_title": "officers[0].title",
    "date": None,
    "signature": None,
    "other": None,
}

_PATH_TOKEN = re.compile(r"([^\[\].]+|\[\d+\])")

_NAME_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"^(business|company|org|legal)\s*(name)?$"), "legal_name"),
    (re.compile(r"^(ein|tax\s*id|federal\s*id)$"), "ein"),
    (re.compile(r"^(street|address\s*1|address\s*line\s*1)$"), "addresses[0].street"),
    (re.compile(r"^city$"), "addresses[0].city"),
    (re.compile(r"^state$"), "addresses[0].state"),
    (re.compile(r"^(zip|postal)$"), "addresses[0].zip"),
    (re.compile(r"^(phone|telephone|tel)$"), "phones[0].number"),
    (re.compile(r"^fax$"), "phones[1].number"),
    (re.compile(r"^(email|e mail)$"), "emails[0].address"),
    (re.compile(r"^(website|web|url)$"), "website"),
    (re.compile(r"^(npi|npi\s*number)$"), "npi_number"),
    (re.compile(r"^(license|lic)\s*(number|no|#)?$"), "license_numbers[0].number"),
    (re.compile(r"^(owner|ceo|president|officer)\s*(name)?$"), "officers[0].name"),
    (re.compile(r"^(title|position)$"), "officers[0].title"),
]


def get_nested_value(data: Mapping[str, Any], path: str) -> Optional[str]:
    """Resolve ``path`` in ``data``; only string and numeric leaves count."""
    tokens = _PATH_TOKEN.findall(path)
    if not tokens:
        return None
    current: Any = data
    for token in tokens:
        if current is None:
            return None
        if token.startswith("["):
            index = int(token[1:-1])
            if not isinstance(current, list) or index >= len(current):
                return None
            current = current[index]
        elif isinstance(current, Mapping):
            current = current.get(token)
        else:
            return None
    if isinstance(current, bool):
        return None
    if isinstance(current, str):
        return current
    if isinstance(current, (int, float)):
        return str(current)
    return None


def match_fields_to_profile(
    analysis: List[Dict[str, Any]],
    profile: Mapping[str, Any],
) -> Tuple[Dict[str, Dict[str, Any]], List[str]]:
    """Return ``(mappings, unmatched_fields)``.

    A field is unmatched when its semantic type has no profile path or the
    profile has no value at that path.
    """
    mappings: Dict[str, Dict[str, Any]] = {}
    unmatched: List[str] = []
    for field in analysis:
        name = field.get("field_name")
        if not name:
            continue
        key = SEMANTIC_TO_PROFILE_KEY.get(field.get("semantic_type") or "other")
        value = get_nested_value(profile, key) if key else None
        if not value:
            unmatched.append(name)
            continue
        confidence = field.get("confidence")
        mappings[name] = {
            "field_name": name,
            "value": value,
            "source": key,
            "confidence": confidence if confidence in CONFIDENCE_LEVELS else "low",
        }
    return mappings, unmatched


def build_form_values(
    mappings: Mapping[str, Dict[str, Any]],
    overrides: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    overrides = overrides or {}
    values = {name: overrides.get(name, mapping["value"]) for name, mapping in mappings.items()}
    for name, value in overrides.items():
        values.setdefault(name, value)
    return values


def get_match_stats(analysis: List[Dict[str, Any]], mappings: Mapping[str, Dict[str, Any]]) -> Dict[str, Any]:
    by_confidence = {level: 0 for level in CONFIDENCE_LEVELS}
    for mapping in mappings.values():
        by_confidence[mapping["confidence"]] += 1
    total = len(analysis)
    matched = len(mappings)
    return {
        "total_fields": total,
        "matched_fields": matched,
        "unmatched_fields": total - matched,
        "match_percentage": round(matched / total * 100) if total else 0,
        "by_confidence": by_confidence,
    }


def suggest_profile_key(field_name: str) -> Optional[str]:
    normalized = re.sub(r"[_-]", " ", field_name.lower()).strip()
    for pattern, key in _NAME_PATTERNS:
        if pattern.match(normalized):
            return key
    return None

"""Semantic version helpers and diffing for industry templates."""
from __future__ import annotations

import re
from typing import Dict, List, Optional, Tuple

SEMVER_RE = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)(-[\w.]+)?(\+[\w.]+)?$")

_COMPARED_FIELDS = (
    ("title", "title"),
    ("description", "description"),
    ("category", "category"),
    ("recurrence", "recurrence"),
    ("default_alert_days", "alert days"),
    ("anchor_type", "anchor type"),
    ("default_month", "default month"),
    ("default_day", "default day"),
    ("importance", "importance"),
    ("penalty_range", "penalty range"),
    ("regulatory_body", "regulatory body"),
)


def is_valid_semver(version: Optional[str]) -> bool:
    return bool(version) and SEMVER_RE.match(version) is not None


def _parts(version: str) -> Tuple[int, int, int]:
    match = SEMVER_RE.match(version or "")
    if not match:
        raise ValueError(f"Invalid semantic version: {version!r}")
    return int(match.group(1)), int(match.group(2)), int(match.group(3))


def compare_semver(a: str, b: str) -> int:
    """Return -1, 0 or 1 comparing major.minor.patch; pre-release tags are ignored."""
    pa, pb = _parts(a), _parts(b)
    if pa < pb:
        return -1
    if pa > pb:
        return 1
    return 0


def get_update_type(old: str, new: str) -> Optional[str]:
    """'major' | 'minor' | 'patch' for an upgrade, None otherwise."""
    if compare_semver(new, old) <= 0:
        return None
    o, n = _parts(old), _parts(new)
    if n[0] != o[0]:
        return "major"
    if n[1] != o[1]:
        return "minor"
    return "patch"


def is_significant_update(old: str, new: str) -> bool:
    return get_update_type(old, new) in ("major", "minor")


def compare_template_versions(old_deadlines: List[dict], new_deadlines: List[dict]) -> Dict[str, list]:
    """Diff two template deadline lists by deadline id."""
    old_by_id = {d["id"]: d for d in old_deadlines or []}
    new_by_id = {d["id"]: d for d in new_deadlines or []}

    added = [d for key, d in new_by_id.items() if key not in old_by_id]
    removed = [d for key, d in old_by_id.items() if key not in new_by_id]
    modified = []
    for key, new in new_by_id.items():
        old = old_by_id.get(key)
        if old is None:
            continue
        changes = []
        for field, label in _COMPARED_FIELDS:
            if old.get(field) != new.get(field):
                changes.append(f"{label} changed from {old.get(field)!r} to {new.get(field)!r}")
        if changes:
            modified.append({"id": key, "title": new.get("title"), "changes": changes})
    return {"added": added, "removed": removed, "modified": modified}


def summarize_changes(diff: Dict[str, list]) -> str:
    parts = []
    if diff.get("added"):
        parts.append(f"{len(diff['added'])} new deadline(s)")
    if diff.get("removed"):
        parts.append(f"{len(diff['removed'])} removed")
    if diff.get("modified"):
        parts.append(f"{len(diff['modified'])} modified")
    return ", ".join(parts) if parts else "No changes detected"


def describe_version_change(old: str, new: str, diff: Optional[Dict[str, list]] = None) -> str:
    if old == new:
        return "No changes"
    if diff is None:
        return f"Template updated from {old} to {new}"
    return f"Template updated from {old} to {new}: {summarize_changes(diff)}"

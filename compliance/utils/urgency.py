"""Alert urgency classification and default channel preferences."""
from __future__ import annotations

import math
from datetime import datetime
from typing import Dict, List, Optional

URGENCY_EARLY = "early"
URGENCY_MEDIUM = "medium"
URGENCY_HIGH = "high"
URGENCY_CRITICAL = "critical"

URGENCY_LEVELS = (URGENCY_EARLY, URGENCY_MEDIUM, URGENCY_HIGH, URGENCY_CRITICAL)

# Days-before-due at which each level starts
URGENCY_THRESHOLDS: Dict[str, int] = {
    URGENCY_EARLY: 14,
    URGENCY_MEDIUM: 7,
    URGENCY_HIGH: 1,
    URGENCY_CRITICAL: 0,
}

CHANNEL_EMAIL = "email"
CHANNEL_SMS = "sms"
CHANNEL_PUSH = "push"
CHANNEL_IN_APP = "in_app"
ALERT_CHANNELS = (CHANNEL_EMAIL, CHANNEL_SMS, CHANNEL_PUSH, CHANNEL_IN_APP)

DEFAULT_ALERT_DAYS: List[int] = [30, 14, 7, 3, 1, 0]

DEFAULT_CHANNELS: Dict[str, List[str]] = {
    URGENCY_EARLY: [CHANNEL_EMAIL],
    URGENCY_MEDIUM: [CHANNEL_EMAIL, CHANNEL_IN_APP],
    URGENCY_HIGH: [CHANNEL_EMAIL, CHANNEL_SMS, CHANNEL_IN_APP],
    URGENCY_CRITICAL: [CHANNEL_EMAIL, CHANNEL_SMS, CHANNEL_IN_APP],
}


def default_preferences() -> dict:
    """Preference payload used when neither user nor org has saved one."""
    return {
        "early_channels": list(DEFAULT_CHANNELS[URGENCY_EARLY]),
        "medium_channels": list(DEFAULT_CHANNELS[URGENCY_MEDIUM]),
        "high_channels": list(DEFAULT_CHANNELS[URGENCY_HIGH]),
        "critical_channels": list(DEFAULT_CHANNELS[URGENCY_CRITICAL]),
        "alert_days": list(DEFAULT_ALERT_DAYS),
        "escalation_enabled": True,
        "escalation_contacts": [],
        "phone_number": None,
        "email_override": None,
    }


def get_urgency_from_days(days: float) -> str:
    if days <= URGENCY_THRESHOLDS[URGENCY_CRITICAL]:
        return URGENCY_CRITICAL
    if days <= URGENCY_THRESHOLDS[URGENCY_HIGH]:
        return URGENCY_HIGH
    if days <= URGENCY_THRESHOLDS[URGENCY_MEDIUM]:
        return URGENCY_MEDIUM
    return URGENCY_EARLY


def get_urgency_level(due_date: datetime, now: datetime) -> str:
    days = math.ceil((due_date - now).total_seconds() / 86400)
    return get_urgency_from_days(days)


def channels_for_urgency(preferences, urgency: str) -> List[str]:
    """Read the channel list for ``urgency`` from a model or a dict."""
    key = f"{urgency}_channels"
    if isinstance(preferences, dict):
        value: Optional[List[str]] = preferences.get(key)
    else:
        value = getattr(preferences, key, None)
    return list(value) if value else list(DEFAULT_CHANNELS[urgency])

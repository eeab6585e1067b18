"""Operator kill switches for the features that call paid or external services.

    LLM_FEATURES_ENABLED             form analysis (Claude field classification)
    FEATURE_SMS_ALERTS_ENABLED       SMS alert scheduling on every plan
    FEATURE_TEMPLATE_IMPORT_ENABLED  industry template import

All default to on. Values are read once and cached; tests call
``refresh_feature_flag_cache`` after changing the environment.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Literal, TypedDict, cast

logger = logging.getLogger(__name__)

FeatureFlagKey = Literal[
    "llm_features_enabled",
    "sms_alerts_enabled",
    "template_import_enabled",
]


class FeatureFlagValues(TypedDict):
    llm_features_enabled: bool
    sms_alerts_enabled: bool
    template_import_enabled: bool


@dataclass(frozen=True)
class ComplianceFeature:
    env_var: str
    label: str
    default: bool = True


_FEATURES: Dict[FeatureFlagKey, ComplianceFeature] = {
    "llm_features_enabled": ComplianceFeature("LLM_FEATURES_ENABLED", "AI form field analysis"),
    "sms_alerts_enabled": ComplianceFeature("FEATURE_SMS_ALERTS_ENABLED", "SMS alerts"),
    "template_import_enabled": ComplianceFeature("FEATURE_TEMPLATE_IMPORT_ENABLED", "Industry template import"),
}

_FALSE_VALUES = {"", "0", "false", "no", "off"}
_TRUE_VALUES = {"1", "true", "yes", "on"}


def normalize_bool(value: str | None, default: bool = True) -> bool:
    """Parse an environment switch; unrecognised values keep the default."""
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in _FALSE_VALUES:
        return False
    if normalized in _TRUE_VALUES:
        return True
    return default


@lru_cache(maxsize=None)
def get_feature_flags() -> FeatureFlagValues:
    """Snapshot of every switch, also returned to the frontend by ``/user-info``."""
    values: Dict[FeatureFlagKey, bool] = {}
    for key, feature in _FEATURES.items():
        enabled = normalize_bool(os.getenv(feature.env_var), default=feature.default)
        if not enabled:
            logger.info("%s disabled by %s", feature.label, feature.env_var)
        values[key] = enabled
    return cast(FeatureFlagValues, values)


def is_feature_enabled(flag: FeatureFlagKey) -> bool:
    return get_feature_flags()[flag]


def llm_features_enabled() -> bool:
    """Off means form analysis returns an error instead of calling Claude."""
    return is_feature_enabled("llm_features_enabled")


def sms_alerts_enabled() -> bool:
    """Off means no SMS alerts are scheduled, even on plans that include them."""
    return is_feature_enabled("sms_alerts_enabled")


def template_import_enabled() -> bool:
    return is_feature_enabled("template_import_enabled")


def refresh_feature_flag_cache() -> None:
    get_feature_flags.cache_clear()

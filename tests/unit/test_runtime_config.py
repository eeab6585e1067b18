import uuid
from unittest.mock import MagicMock, patch

import pytest
import requests

from compliance.errors import (
    ComplianceError,
    Duplicate,
    ErrorCode,
    Expired,
    LimitExceeded,
    NotFound,
    RateLimited,
)
from compliance.services.sms_service import SmsService, TwilioConfig, normalize_phone_number
from compliance.utils import feature_flags, runtime, urls


class TestErrors:
    def test_http_status_mapping(self):
        assert NotFound("x").http_status == 404
        assert LimitExceeded("x").http_status == 402
        assert Duplicate("x").http_status == 409
        assert Expired("x").http_status == 410
        assert RateLimited("x").http_status == 429

    def test_to_dict_carries_details(self):
        err = LimitExceeded("Deadline limit reached", limit=25, current=25)
        assert err.to_dict() == {
            "error": "LIMIT_EXCEEDED",
            "message": "Deadline limit reached",
            "detail": {"limit": 25, "current": 25},
        }

    def test_code_override(self):
        err = ComplianceError("gone", code=ErrorCode.EXPIRED)
        assert err.http_status == 410


class TestUrls:
    def test_default_base(self, monkeypatch):
        monkeypatch.delenv("APP_BASE_URL", raising=False)
        monkeypatch.delenv("APP_HOST", raising=False)
        assert urls.get_app_base_url() == "http://localhost:3000"

    def test_app_host_gets_scheme(self, monkeypatch):
        monkeypatch.delenv("APP_BASE_URL", raising=False)
        monkeypatch.setenv("APP_HOST", "app.example.com")
        assert urls.get_app_base_url() == "https://app.example.com"

    def test_calendar_urls(self, monkeypatch):
        monkeypatch.setenv("APP_BASE_URL", "https://app.example.com/")
        org_id = uuid.uuid4()
        feed = urls.build_calendar_feed_url(org_id)
        assert feed == f"https://app.example.com/api/calendar/{org_id}/feed.ics"
        assert urls.build_webcal_url(org_id) == f"webcal://app.example.com/api/calendar/{org_id}/feed.ics"
        google = urls.build_google_calendar_url(org_id)
        assert google.startswith("https://calendar.google.com/calendar/r?cid=https%3A%2F%2Fapp.example.com")

    def test_invite_link_includes_token(self, monkeypatch):
        monkeypatch.setenv("APP_BASE_URL", "https://app.example.com")
        link = urls.build_invite_link(invitation_id="inv", org_id="org", email="a@b.co", token="tok")
        assert link == "https://app.example.com/invite/accept?invitation=inv&org=org&email=a%40b.co&token=tok"


class TestSms:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("(555) 123-4567", "+15551234567"),
            ("1-555-123-4567", "+15551234567"),
            ("+44 20 7946 0958", "+442079460958"),
            ("12345", None),
            ("", None),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_phone_number(raw) == expected

    def test_unconfigured_returns_failure(self):
        result = SmsService(TwilioConfig()).send_sms("5551234567", "hello")
        assert result == {"success": False, "error": "Twilio credentials not configured"}

    def test_missing_number(self):
        assert SmsService().send_sms(None, "hi")["success"] is False

    def _configured(self, monkeypatch):
        monkeypatch.setenv("TWILIO_ACCOUNT_SID", "AC123")
        monkeypatch.setenv("TWILIO_AUTH_TOKEN", "secret")
        monkeypatch.setenv("TWILIO_PHONE_NUMBER", "+15550000000")
        return SmsService(TwilioConfig())

    def test_send_success(self, monkeypatch):
        service = self._configured(monkeypatch)
        response = MagicMock(status_code=201)
        response.json.return_value = {"sid": "SM1"}
        with patch("compliance.services.sms_service.requests.post", return_value=response) as post:
            result = service.send_sms("555-123-4567", "Deadline due")
        assert result == {"success": True, "provider": "twilio", "message_id": "SM1"}
        assert post.call_args.kwargs["data"]["To"] == "+15551234567"

    def test_send_http_error(self, monkeypatch):
        service = self._configured(monkeypatch)
        response = MagicMock(status_code=400, text="bad")
        response.json.return_value = {"message": "Invalid To"}
        with patch("compliance.services.sms_service.requests.post", return_value=response):
            result = service.send_sms("5551234567", "x")
        assert result == {"success": False, "error": "HTTP 400: Invalid To"}

    def test_send_network_error(self, monkeypatch):
        service = self._configured(monkeypatch)
        with patch(
            "compliance.services.sms_service.requests.post",
            side_effect=requests.ConnectionError("down"),
        ):
            assert service.send_sms("5551234567", "x") == {"success": False, "error": "down"}


class TestFeatureFlags:
    def test_defaults_on(self, monkeypatch):
        monkeypatch.delenv("FEATURE_SMS_ALERTS_ENABLED", raising=False)
        feature_flags.refresh_feature_flag_cache()
        assert feature_flags.sms_alerts_enabled() is True

    def test_env_disables(self, monkeypatch):
        monkeypatch.setenv("FEATURE_SMS_ALERTS_ENABLED", "off")
        monkeypatch.setenv("LLM_FEATURES_ENABLED", "0")
        feature_flags.refresh_feature_flag_cache()
        assert feature_flags.sms_alerts_enabled() is False
        assert feature_flags.llm_features_enabled() is False
        assert feature_flags.template_import_enabled() is True

    def test_normalize_bool(self):
        assert feature_flags.normalize_bool("YES") is True
        assert feature_flags.normalize_bool("maybe", default=False) is False
        assert feature_flags.normalize_bool(None) is True

    def test_disabled_switch_is_logged(self, monkeypatch, caplog):
        monkeypatch.setenv("FEATURE_TEMPLATE_IMPORT_ENABLED", "no")
        feature_flags.refresh_feature_flag_cache()
        with caplog.at_level("INFO", logger="compliance.utils.feature_flags"):
            flags = feature_flags.get_feature_flags()
        assert flags["template_import_enabled"] is False
        assert "Industry template import disabled by FEATURE_TEMPLATE_IMPORT_ENABLED" in caplog.text


class TestDevMode:
    def test_off_by_default(self, monkeypatch):
        monkeypatch.setenv("DEV_MODE", "false")
        assert runtime.dev_mode_active() is False

    def test_local_base_url_allowed(self, monkeypatch):
        monkeypatch.setenv("DEV_MODE", "true")
        monkeypatch.setenv("APP_BASE_URL", "http://localhost:3000")
        assert runtime.dev_mode_active() is True

    def test_remote_base_url_rejected(self, monkeypatch):
        monkeypatch.setenv("DEV_MODE", "true")
        monkeypatch.setenv("APP_BASE_URL", "https://app.example.com")
        with pytest.raises(RuntimeError, match="app.example.com"):
            runtime.dev_mode_active()

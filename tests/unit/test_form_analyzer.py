import json
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from compliance.services.form_service import FormFieldAnalyzer, RateLimiter, strip_code_fences


class TestRateLimiter:
    def test_sliding_window(self):
        limiter = RateLimiter(max_calls=2, window_seconds=60)
        limiter.record("org", now=0)
        limiter.record("org", now=10)
        assert not limiter.allow("org", now=30)
        assert limiter.allow("org", now=60)
        assert limiter.allow("other", now=30)

    def test_reset(self):
        limiter = RateLimiter(max_calls=1)
        limiter.record("org")
        assert not limiter.allow("org")
        limiter.reset()
        assert limiter.allow("org")


@pytest.mark.parametrize(
    "raw,expected",
    [
        ('```json\n[{"a": 1}]\n```', '[{"a": 1}]'),
        ("```\n[]\n```", "[]"),
        ("  [1, 2]  ", "[1, 2]"),
    ],
)
def test_strip_code_fences(raw, expected):
    assert strip_code_fences(raw) == expected


def _response(text):
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])


class TestFormFieldAnalyzer:
    FIELDS = [{"name": "BusinessName", "type": "text", "options": None}]

    def test_requires_api_key(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        with pytest.raises(RuntimeError, match="ANTHROPIC_API_KEY"):
            FormFieldAnalyzer().analyze(self.FIELDS)

    def test_parses_fenced_json(self):
        payload = [{"field_name": "BusinessName", "semantic_type": "business_name", "confidence": "high"}, "junk"]
        client = MagicMock()
        client.messages.create.return_value = _response("```json\n" + json.dumps(payload) + "\n```")
        with patch("compliance.services.form_service.Anthropic", return_value=client) as ctor:
            result = FormFieldAnalyzer(api_key="sk-test", model="test-model").analyze(self.FIELDS)
        ctor.assert_called_once_with(api_key="sk-test")
        assert client.messages.create.call_args.kwargs["model"] == "test-model"
        assert "BusinessName" in client.messages.create.call_args.kwargs["messages"][0]["content"]
        assert result == [payload[0]]

    def test_rejects_non_array(self):
        client = MagicMock()
        client.messages.create.return_value = _response('{"field_name": "x"}')
        with patch("compliance.services.form_service.Anthropic", return_value=client):
            with pytest.raises(ValueError, match="JSON array"):
                FormFieldAnalyzer(api_key="sk-test").analyze(self.FIELDS)

    def test_missing_text_block(self):
        client = MagicMock()
        client.messages.create.return_value = SimpleNamespace(content=[])
        with patch("compliance.services.form_service.Anthropic", return_value=client):
            with pytest.raises(RuntimeError, match="No text response"):
                FormFieldAnalyzer(api_key="sk-test").analyze(self.FIELDS)

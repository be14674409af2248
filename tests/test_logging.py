"""Tests for sanitized provider request logs."""

import json

from colloquy.core.providers.logging import _sanitize_for_logs, log_request_response


class TestSanitize:
    def test_redacts_secrets_and_text(self):
        payload = {
            "api_key": "sk-secret",
            "input": "You are Alice.",
            "messages": [{"role": "user", "content": "hello"}],
            "model": "gpt-5",
        }
        cleaned = _sanitize_for_logs(payload)

        assert cleaned["api_key"] == "[REDACTED_SECRET]"
        assert cleaned["input"] == "[REDACTED_TEXT length=14]"
        assert cleaned["messages"][0]["content"] == "[REDACTED_TEXT length=5]"
        assert cleaned["messages"][0]["role"] == "user"
        assert cleaned["model"] == "gpt-5"

    def test_keeps_token_counts(self):
        cleaned = _sanitize_for_logs({"usage": {"input_tokens": 12, "output_tokens": 3}})
        assert cleaned == {"usage": {"input_tokens": 12, "output_tokens": 3}}

    def test_truncates_long_strings(self):
        cleaned = _sanitize_for_logs({"model": "x" * 300})
        assert cleaned["model"].endswith("...[truncated]")


def test_log_file_written(tmp_path):
    log_request_response(
        "simple_call_async",
        {"model": "gpt-5", "input": "secret prompt"},
        {"response": "hi", "usage": {"input_tokens": 1}},
        provider="openai",
    )
    (log_file,) = tmp_path.glob("*_openai_simple_call_async.json")
    data = json.loads(log_file.read_text())
    assert data["provider"] == "openai"
    assert data["request"]["input"] == "[REDACTED_TEXT length=13]"
    assert data["response"]["usage"]["input_tokens"] == 1

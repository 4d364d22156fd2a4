"""Tests for the database helpers and the shared model call"""

from __future__ import annotations

import logging

import pytest

from rabbithole.infrastructure.database import (
    get_db_connection,
    get_pool_stats,
    reset_pool,
    validate_schema,
)
from rabbithole.llm import retry as llm_retry
from rabbithole.llm.gemini import is_llm_configured
from rabbithole.observability.telemetry import get_counter


class TestDatabase:
    def test_schema_valid_after_init(self, db):
        assert validate_schema() is True

    def test_foreign_keys_enforced(self, db):
        with get_db_connection() as conn:
            assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1

    def test_missing_file_raises(self, tmp_path, monkeypatch):
        monkeypatch.setenv("RABBITHOLE_DB_PATH", str(tmp_path / "absent.db"))
        reset_pool()

        with pytest.raises(FileNotFoundError), get_db_connection():
            pass

    def test_connections_return_to_pool(self, db):
        with get_db_connection():
            assert get_pool_stats()["in_use"] == 1
        assert get_pool_stats()["in_use"] == 0

    def test_missing_table_detected(self, db):
        with get_db_connection() as conn:
            conn.execute("DROP TABLE drawings")
            conn.commit()

        with pytest.raises(ValueError, match="drawings"):
            validate_schema()


class TestLlmConfig:
    @pytest.mark.parametrize("flag", ["0", "false", "No", "OFF"])
    def test_switch_off(self, monkeypatch, flag):
        monkeypatch.setenv("GOOGLE_API_KEY", "key")
        monkeypatch.setenv("RABBITHOLE_USE_LLM", flag)
        assert is_llm_configured() is False

    def test_needs_credentials(self, monkeypatch):
        monkeypatch.setenv("RABBITHOLE_USE_LLM", "true")
        assert is_llm_configured() is False

        monkeypatch.setenv("GOOGLE_CLOUD_PROJECT", "proj")
        assert is_llm_configured() is True


class _Response:
    def __init__(self, text):
        self.text = text


class _Model:
    def __init__(self, result):
        self.result = result
        self.calls = []

    def generate_content(self, prompt, generation_config):
        self.calls.append((prompt, generation_config))
        if isinstance(self.result, Exception):
            raise self.result
        return _Response(self.result)


class TestCallLlm:
    def test_returns_text_and_requests_json(self, monkeypatch):
        model = _Model('{"ok": true}')
        monkeypatch.setattr(llm_retry, "get_gemini_model_with_options", lambda **_: model)

        text = llm_retry.call_llm("prompt", counter_prefix="grouping", temperature=0.2)

        assert text == '{"ok": true}'
        config = model.calls[0][1]
        assert config["temperature"] == 0.2
        assert config["response_mime_type"] == "application/json"
        assert get_counter("grouping.llm_calls") == 1

    def test_model_call_is_timed(self, monkeypatch, caplog):
        monkeypatch.setattr(
            llm_retry, "get_gemini_model_with_options", lambda **_: _Model("[]")
        )

        with caplog.at_level(logging.DEBUG, logger="rabbithole.telemetry"):
            llm_retry.call_llm("prompt", counter_prefix="recommendations")

        assert "timing=recommendations.llm_latency" in caplog.text

    def test_empty_text_becomes_empty_string(self, monkeypatch):
        monkeypatch.setattr(
            llm_retry, "get_gemini_model_with_options", lambda **_: _Model(None)
        )
        assert llm_retry.call_llm("prompt", json_output=False) == ""

    def test_non_transient_errors_not_retried(self, monkeypatch):
        model = _Model(ValueError("blocked"))
        monkeypatch.setattr(llm_retry, "get_gemini_model_with_options", lambda **_: model)

        with pytest.raises(ValueError):
            llm_retry.call_llm("prompt")

        assert len(model.calls) == 1

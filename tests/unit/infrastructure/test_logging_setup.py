"""Tests for structlog/stdlib logging setup."""

from __future__ import annotations

import logging

import structlog

from magnetarr.infrastructure.config.schema import AppConfig
from magnetarr.infrastructure.logging.setup import (
    build_logging_config,
    configure_logging,
    redact_secrets,
    stop_logging,
)


def _renderer_of(cfg: dict) -> object:
    return cfg["formatters"]["structlog"]["processors"][-1]


class TestBuildLoggingConfig:
    def test_console_in_dev(self) -> None:
        cfg = build_logging_config(AppConfig(environment="dev"))
        assert isinstance(_renderer_of(cfg), structlog.dev.ConsoleRenderer)

    def test_json_in_prod(self) -> None:
        cfg = build_logging_config(AppConfig(environment="prod"))
        assert isinstance(_renderer_of(cfg), structlog.processors.JSONRenderer)

    def test_level_applied_to_uvicorn_loggers(self) -> None:
        cfg = build_logging_config(AppConfig(log_level="WARNING"))
        assert cfg["root"]["level"] == "WARNING"
        assert cfg["loggers"]["uvicorn.access"]["level"] == "WARNING"


class TestRedactSecrets:
    def test_query_string_key_masked(self) -> None:
        event = {
            "event": "HTTP Request: GET https://www.premiumize.me/api/cache/check"
            "?apikey=s3cret&items[]=abc",
        }
        out = redact_secrets(None, None, event)
        assert "s3cret" not in out["event"]
        assert "apikey=***&items[]=abc" in out["event"]

    def test_credential_fields_masked(self) -> None:
        out = redact_secrets(None, None, {"event": "x", "api_key": "s3cret"})
        assert out["api_key"] == "***"

    def test_other_fields_untouched(self) -> None:
        event = {"event": "stremio_streams_ready", "cache_key": "movie-tt1", "returned": 3}
        assert redact_secrets(None, None, dict(event)) == event


class TestConfigureLogging:
    def test_returns_applied_dict_config(self) -> None:
        try:
            cfg = configure_logging(AppConfig(log_level="INFO"))
            assert cfg["version"] == 1
            assert "structlog" in cfg["formatters"]
            assert logging.getLogger("httpx").level == logging.WARNING
            assert logging.getLogger("uvicorn").propagate is True
        finally:
            stop_logging()

    def test_debug_keeps_http_loggers_verbose(self) -> None:
        try:
            configure_logging(AppConfig(log_level="DEBUG"))
            assert logging.getLogger("httpx").level == logging.DEBUG
        finally:
            stop_logging()

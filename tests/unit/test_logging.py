"""Unit tests for logging functionality."""

import contextlib
import logging

import structlog

from ferry_captain.core.logging import (
    correlation_id_var,
    get_logger,
    log_with_context,
    setup_logging,
)


def _capture_events():
    """Insert a processor before the JSON renderer that collects event dicts."""
    captured = []

    def capture_log(
        logger: structlog.stdlib.BoundLogger, method_name: str, event_dict: dict
    ) -> dict:
        captured.append(event_dict)
        return event_dict

    processors = structlog.get_config()["processors"]
    processors.insert(-1, capture_log)
    return captured


class TestLoggingSetup:
    """Test logging setup functionality."""

    def test_setup_logging_configures_structlog(self) -> None:
        structlog.reset_defaults()

        setup_logging("INFO")

        assert structlog.is_configured()

    def test_setup_logging_configures_standard_logging(self) -> None:
        setup_logging("INFO")

        root_logger = logging.getLogger()
        assert root_logger.handlers
        assert root_logger.level <= logging.INFO

    def test_setup_logging_applies_new_level_on_reconfigure(self) -> None:
        root_logger = logging.getLogger()
        original_level = root_logger.level

        try:
            setup_logging("DEBUG")
            assert root_logger.level == logging.DEBUG

            setup_logging("WARNING")
            assert root_logger.level == logging.WARNING
        finally:
            root_logger.setLevel(original_level)
            setup_logging("INFO")

    def test_http_client_logs_are_quieted(self) -> None:
        setup_logging("DEBUG")

        try:
            assert logging.getLogger("httpx").level == logging.WARNING
        finally:
            setup_logging("INFO")

    def test_get_logger_returns_logger(self) -> None:
        setup_logging("INFO")

        logger = get_logger("test_logger")
        assert hasattr(logger, "info")


class TestCorrelationIdInLogs:
    """Test correlation ID inclusion in logs."""

    def test_correlation_id_and_service_included(self) -> None:
        setup_logging("INFO")
        correlation_id_var.set("test-correlation-123")
        captured = _capture_events()

        try:
            get_logger("test").info("Test message", trip_id="trip-1")

            assert len(captured) == 1
            assert captured[0]["correlation_id"] == "test-correlation-123"
            assert captured[0]["service"] == "ferry-captain"
            assert captured[0]["trip_id"] == "trip-1"
        finally:
            setup_logging("INFO")

    def test_default_correlation_id_when_not_set(self) -> None:
        setup_logging("INFO")
        with contextlib.suppress(LookupError):
            correlation_id_var.set("-")
        captured = _capture_events()

        try:
            get_logger("test").info("Test message")

            assert captured[0]["correlation_id"] == "-"
        finally:
            setup_logging("INFO")

    def test_log_with_context_binds_fields(self) -> None:
        setup_logging("INFO")
        captured = _capture_events()

        try:
            log_with_context(get_logger("test"), trip_id="trip-9").info("Bound")

            assert captured[0]["trip_id"] == "trip-9"
        finally:
            setup_logging("INFO")

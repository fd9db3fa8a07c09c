"""Tests for JSON log formatting and context loggers."""

import io
import json
import logging

import pytest

from stylerec.config import settings
from stylerec.logging_config import CustomJsonFormatter, get_logger, setup_logging


@pytest.fixture
def captured():
    """Route a dedicated logger through the JSON formatter into a buffer."""
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(CustomJsonFormatter("%(message)s"))
    logger = logging.getLogger("stylerec.tests.logging")
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    def records():
        return [json.loads(line) for line in stream.getvalue().splitlines()]

    yield logger, records
    logger.removeHandler(handler)


def test_record_has_service_fields(captured):
    logger, records = captured
    logger.warning("Source failed")

    (record,) = records()
    assert record["message"] == "Source failed"
    assert record["service"] == "stylerec"
    assert record["level"] == "WARNING"
    assert record["logger"] == "stylerec.tests.logging"
    assert record["location"].startswith("test_logging_config.test_record_has_service_fields:")
    assert record["timestamp"].endswith("+00:00")
    assert record["user_id"] is None
    assert record["source"] is None


def test_context_logger_promotes_context(captured):
    logger, records = captured
    log = get_logger(logger.name, user_id="u1")

    log.info("Loading items")
    log.bind(source="discovery").info("No candidates")

    first, second = records()
    assert (first["user_id"], first["source"]) == ("u1", None)
    assert (second["user_id"], second["source"]) == ("u1", "discovery")


def test_call_site_extra_wins_over_bound_context(captured):
    logger, records = captured
    get_logger(logger.name, link_id=1).info("Stored", extra={"link_id": 2})
    assert records()[0]["link_id"] == 2


def test_setup_logging_writes_json_files(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "debug", False)
    monkeypatch.setattr(settings, "log_level", "INFO")
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    try:
        setup_logging(tmp_path / "logs")
        logging.getLogger("stylerec.tests.files").error("Persist failed", extra={"user_id": "u9"})
        logging.getLogger("stylerec.tests.files").info("Returning 3 recommendations")
        for handler in root.handlers:
            handler.flush()

        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        for handler in root.handlers:
            handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)

    def written(filename):
        lines = (tmp_path / "logs" / filename).read_text().splitlines()
        return [r for r in map(json.loads, lines) if r["logger"] == "stylerec.tests.files"]

    assert [r["user_id"] for r in written("stylerec-errors.log")] == ["u9"]
    assert [r["message"] for r in written("stylerec.log")] == [
        "Persist failed",
        "Returning 3 recommendations",
    ]

"""
Tests for logging setup and the JSON line format.
"""

from __future__ import annotations

import json
import logging

import pytest

from message_geo.config import Settings
from message_geo.logging_config import ResolutionJSONFormatter, setup_logging
from message_geo.models import LocationQuery
from message_geo.tests.fakes import TENANT


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    package = logging.getLogger("message_geo")
    handlers, level, package_level = list(root.handlers), root.level, package.level
    yield root
    root.handlers = handlers
    root.setLevel(level)
    package.setLevel(package_level)


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "message_geo.resolver", logging.INFO, __file__, 1, "Resolved %d location(s)", (1,), None
    )
    record.__dict__.update(extra)
    return record


def test_production_logs_json(root_logger):
    setup_logging(Settings(env="production", log_level="warning"))
    assert root_logger.level == logging.WARNING
    assert len(root_logger.handlers) == 1
    assert isinstance(root_logger.handlers[0].formatter, ResolutionJSONFormatter)


def test_package_logger_follows_log_level(root_logger):
    setup_logging(Settings(env="production", log_level="debug"))
    assert logging.getLogger("message_geo").level == logging.DEBUG


def test_third_party_quieted(root_logger):
    setup_logging(Settings(env="production"))
    for name in ("httpx", "httpcore", "asyncpg"):
        assert logging.getLogger(name).level == logging.WARNING


def test_json_line_fields():
    line = json.loads(ResolutionJSONFormatter().format(_record(site=TENANT, strategy="gazetteer")))
    assert line["message"] == "Resolved 1 location(s)"
    assert line["service"] == "message_geo"
    assert line["level"] == "INFO"
    assert line["logger"] == "message_geo.resolver"
    assert (line["site"], line["strategy"]) == (TENANT, "gazetteer")


@pytest.mark.asyncio
async def test_resolution_logged_with_site_and_strategy(resolver, caplog):
    with caplog.at_level(logging.INFO, logger="message_geo.resolver"):
        await resolver.resolve(LocationQuery(sentence="Clashes in Tripoli", language_tag="en"))

    resolved = [r for r in caplog.records if r.getMessage().startswith("Resolved")]
    assert [(r.site, r.strategy) for r in resolved] == [(TENANT, "gazetteer")]

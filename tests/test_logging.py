"""Tests for newsheat/logging.py: handler installation and rendering."""

import io
import json
import logging

from newsheat.logging import setup_logging


def _our_handlers():
    return [h for h in logging.getLogger().handlers if h.get_name() == "newsheat"]


def test_repeated_setup_keeps_one_handler():
    setup_logging("console", "INFO")
    setup_logging("console", "WARNING")
    assert len(_our_handlers()) == 1
    assert logging.getLogger().level == logging.WARNING
    assert logging.getLogger("httpx").level == logging.WARNING


def test_stdlib_records_rendered_as_json():
    buffer = io.StringIO()
    setup_logging("json", "INFO", stream=buffer)
    logging.getLogger("newsheat.service").info("Heatmap built: %d clusters", 3)
    line = buffer.getvalue().strip().splitlines()[-1]
    record = json.loads(line)
    assert record["event"] == "Heatmap built: 3 clusters"
    assert record["level"] == "info"
    assert record["logger"] == "newsheat.service"

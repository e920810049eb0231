import json
import logging

import pytest

from contractor_bids.logging_config import StructuredFormatter, get_trace_id, log_context, parse_trace_header


def make_record(**extra):
    logger = logging.getLogger("contractor_bids.test")
    return logger.makeRecord(logger.name, logging.WARNING, __file__, 10, "Autosave failed", (), None, extra=extra)


def test_extra_fields_are_included():
    payload = json.loads(StructuredFormatter().format(make_record(bid_id="b1", attempts=3)))

    assert payload["severity"] == "WARNING"
    assert payload["message"] == "Autosave failed"
    assert payload["bid_id"] == "b1"
    assert payload["attempts"] == 3
    assert "args" not in payload


@pytest.mark.parametrize(
    "header, expected",
    [
        ("105445aa7843bc8bf206b12000100000/1;o=1", ("105445aa7843bc8bf206b12000100000", "1")),
        ("105445aa7843bc8bf206b12000100000", ("105445aa7843bc8bf206b12000100000", None)),
        ("", (None, None)),
        (None, (None, None)),
    ],
)
def test_parse_trace_header(header, expected):
    assert parse_trace_header(header) == expected


def test_request_context_is_attached_and_reset():
    formatter = StructuredFormatter("demo-project")

    with log_context(trace_id="abc", span_id="7", owner="owner@example.com"):
        assert get_trace_id() == "abc"
        payload = json.loads(formatter.format(make_record()))

    assert payload["logging.googleapis.com/trace"] == "projects/demo-project/traces/abc"
    assert payload["logging.googleapis.com/spanId"] == "7"
    assert payload["owner"] == "owner@example.com"
    assert get_trace_id() is None
    assert "owner" not in json.loads(formatter.format(make_record()))


def test_trace_without_project_is_bare_id():
    with log_context(trace_id="abc"):
        payload = json.loads(StructuredFormatter().format(make_record()))
    assert payload["logging.googleapis.com/trace"] == "abc"

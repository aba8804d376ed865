"""Tests for agrifund_kernel.logging_config: JSON lines, context fields, setup."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from agrifund_kernel.exceptions import IllegalTransitionError, NotYetReportedError
from agrifund_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _isolated_logging():
    """Start each test unconfigured, then restore the suite's DEBUG setup."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


@pytest.fixture
def json_lines():
    """
    Configure logging into a buffer.

    Returns ``read(level=INFO)``: configures on first call and yields the
    parsed lines written so far on every later call.
    """
    buffer = StringIO()
    state = {"configured": False}

    def read(level=logging.INFO) -> list[dict]:
        if not state["configured"]:
            sink = logging.StreamHandler(buffer)
            configure_logging(handler=sink, level=level)
            state["configured"] = True
        return [json.loads(line) for line in buffer.getvalue().splitlines() if line]

    return read


class TestStructuredFormatter:

    def test_line_shape(self, json_lines):
        json_lines()
        get_logger("unit").info("hello")

        (line,) = json_lines()
        assert line["message"] == "hello"
        assert line["level"] == "INFO"
        assert line["logger"] == "agrifund.unit"
        assert line["ts"].endswith("+00:00")

    def test_extras_become_fields(self, json_lines):
        json_lines()
        get_logger("unit").info("pledged", extra={"milestone_count": 3, "status": "funding"})

        (line,) = json_lines()
        assert (line["milestone_count"], line["status"]) == (3, "funding")

    def test_context_merged(self, json_lines):
        json_lines()
        LogContext.set(correlation_id="abc-123", project_id="prj-1", actor_role="technician")
        get_logger("unit").info("reported")

        (line,) = json_lines()
        assert line["correlation_id"] == "abc-123"
        assert line["project_id"] == "prj-1"
        assert line["actor_role"] == "technician"

    def test_context_wins_over_extra(self, json_lines):
        json_lines()
        LogContext.set(project_id="from-context")
        get_logger("unit").info("dup", extra={"project_id": "from-extra"})

        assert json_lines()[0]["project_id"] == "from-context"

    def test_plain_exception(self, json_lines):
        json_lines()
        try:
            {}["missing"]
        except KeyError:
            get_logger("unit").exception("lookup_failed")

        (line,) = json_lines()
        assert line["exc_type"] == "KeyError"
        assert "exc_code" not in line
        assert "Traceback" in line["traceback"]

    def test_transition_error_fields(self, json_lines):
        json_lines()
        try:
            raise IllegalTransitionError("p-1", "pending", "launch_production", "not fully funded")
        except IllegalTransitionError:
            get_logger("unit").error("launch_error", exc_info=True)

        (line,) = json_lines()
        assert line["exc_code"] == "ILLEGAL_TRANSITION"
        assert line["exc_current_state"] == "pending"
        assert line["exc_reason"] == "not fully funded"
        assert line["exc_entity_type"] == "project"

    def test_milestone_error_fields(self, json_lines):
        json_lines()
        try:
            raise NotYetReportedError("m-7")
        except NotYetReportedError:
            get_logger("unit").exception("request_error")

        (line,) = json_lines()
        assert line["exc_code"] == NotYetReportedError.code
        assert line["exc_milestone_id"] == "m-7"

    def test_empty_context_adds_nothing(self, json_lines):
        json_lines()
        get_logger("unit").info("bare")

        (line,) = json_lines()
        assert not {"correlation_id", "operation", "actor_id"} & set(line)

    def test_uuid_and_decimal_as_strings(self, json_lines):
        json_lines()
        milestone_id = uuid4()
        get_logger("unit").info(
            "typed", extra={"milestone_id": milestone_id, "amount": Decimal("200000.50")}
        )

        (line,) = json_lines()
        assert line["milestone_id"] == str(milestone_id)
        assert line["amount"] == "200000.50"

    def test_formatter_standalone(self):
        record = logging.LogRecord("agrifund.x", logging.WARNING, __file__, 1, "late %s", ("pay",), None)
        assert json.loads(StructuredFormatter().format(record))["message"] == "late pay"


class TestLogContext:

    def test_set_ignores_none_and_unknown(self):
        LogContext.set(correlation_id="x", operation="record_report", actor_id=None, event_id="e")
        assert LogContext.get_all() == {"correlation_id": "x", "operation": "record_report"}

    def test_clear_empties(self):
        LogContext.set(project_id="p")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_nests(self):
        LogContext.set(operation="outer")
        with LogContext.bind(operation="inner", actor_role="farmer"):
            assert LogContext.get_all() == {"operation": "inner", "actor_role": "farmer"}
        assert LogContext.get_all() == {"operation": "outer"}

    def test_bind_restores_on_error(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(project_id="temp"):
                raise RuntimeError("rolled back")
        assert "project_id" not in LogContext.get_all()


class TestConfigureLogging:

    def test_second_call_is_ignored(self):
        first, second = logging.NullHandler(), logging.NullHandler()
        configure_logging(handler=first)
        configure_logging(handler=second)
        assert logging.getLogger("agrifund").handlers == [first]

    def test_logger_names_are_namespaced(self):
        assert get_logger("services.lifecycle_engine").name == "agrifund.services.lifecycle_engine"

    def test_level_filters_debug(self, json_lines):
        json_lines(level="INFO")
        log = get_logger("deep.nested")
        log.debug("hidden")
        log.warning("shown")
        assert [line["message"] for line in json_lines()] == ["shown"]

    def test_debug_level_by_name(self, json_lines):
        json_lines(level="DEBUG")
        get_logger("deep.nested").debug("visible")
        assert json_lines()[0]["logger"] == "agrifund.deep.nested"

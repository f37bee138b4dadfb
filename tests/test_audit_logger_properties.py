"""
Property-based tests for Audit Logger module.

Uses Hypothesis to verify both output formats and the severity filter.
"""

import json
from io import StringIO

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from tls_compare.audit_logger import AuditLogger
from tls_compare.enums import LogLevel
from tls_compare.exceptions import OutputStoreError


# Strategies for generating valid test data

@st.composite
def component_name_strategy(draw) -> str:
    """Generate valid component names."""
    return draw(st.text(
        alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_-"),
        min_size=1,
        max_size=50,
    ))


@st.composite
def message_strategy(draw) -> str:
    """Generate valid log messages."""
    return draw(st.text(
        alphabet=st.characters(
            whitelist_categories=('L', 'N', 'P', 'S', 'Z'),
            blacklist_characters='\x00\n\r',
        ),
        min_size=1,
        max_size=200,
    ))


@st.composite
def simple_value_strategy(draw):
    """Generate simple JSON-serializable values."""
    return draw(st.one_of(
        st.text(min_size=0, max_size=50),
        st.integers(min_value=-1000, max_value=1000),
        st.booleans(),
        st.none(),
    ))


@st.composite
def data_strategy(draw) -> dict:
    """Generate data dictionaries."""
    return draw(st.dictionaries(
        st.text(alphabet="abcdefghijklmnopqrstuvwxyz_", min_size=1, max_size=20),
        simple_value_strategy(),
        max_size=5,
    ))


class TestDualFormatProperty:
    """Property-based tests for dual format logging."""

    @given(
        level=st.sampled_from(list(LogLevel)),
        component=component_name_strategy(),
        message=message_strategy(),
        data=data_strategy(),
    )
    @settings(max_examples=100)
    def test_json_output_is_parseable(
        self, level: LogLevel, component: str, message: str, data: dict
    ) -> None:
        """
        Property: JSON output is one parseable object per entry carrying every field.
        """
        stream = StringIO()
        logger = AuditLogger(output_format="json", output_stream=stream, min_level=LogLevel.DEBUG)

        logger.log(level, component, message, data)

        lines = stream.getvalue().splitlines()
        assert len(lines) == 1
        parsed = json.loads(lines[0])
        assert parsed["level"] == level.value
        assert parsed["component"] == component
        assert parsed["message"] == message
        assert parsed["data"] == data

    @given(
        level=st.sampled_from(list(LogLevel)),
        component=component_name_strategy(),
        message=message_strategy(),
    )
    @settings(max_examples=100)
    def test_text_output_contains_fields(self, level: LogLevel, component: str, message: str) -> None:
        stream = StringIO()
        logger = AuditLogger(output_format="text", output_stream=stream, min_level=LogLevel.DEBUG)

        logger.log(level, component, message)

        line = stream.getvalue().rstrip("\n")
        assert level.value.upper() in line
        assert f"[{component}]" in line
        assert line.endswith(message)

    @given(message=message_strategy())
    @settings(max_examples=50)
    def test_both_formats_write_two_lines(self, message: str) -> None:
        stream = StringIO()
        logger = AuditLogger(output_format="both", output_stream=stream)

        logger.log(LogLevel.INFO, "Test", message)

        lines = stream.getvalue().splitlines()
        assert len(lines) == 2
        assert json.loads(lines[0])["message"] == message

    def test_invalid_format_rejected(self) -> None:
        with pytest.raises(ValueError):
            AuditLogger(output_format="xml")


class TestLevelFilterProperty:
    """Property-based tests for the minimum level filter."""

    @given(
        min_level=st.sampled_from(list(LogLevel)),
        level=st.sampled_from(list(LogLevel)),
    )
    @settings(max_examples=100)
    def test_entries_below_min_level_are_dropped(self, min_level: LogLevel, level: LogLevel) -> None:
        """
        Property: an entry is emitted iff its level is at least the minimum level.
        """
        stream = StringIO()
        logger = AuditLogger(output_stream=stream, min_level=min_level)

        entry = logger.log(level, "Test", "message")

        emitted = level.rank >= min_level.rank
        assert (entry is not None) == emitted
        assert bool(stream.getvalue()) == emitted
        assert len(logger.entries) == (1 if emitted else 0)

    def test_from_config(self) -> None:
        stream = StringIO()
        logger = AuditLogger.from_config("warn", "json", output_stream=stream)

        logger.log(LogLevel.INFO, "Test", "dropped")
        logger.log(LogLevel.WARN, "Test", "kept")

        assert logger.min_level is LogLevel.WARN
        assert logger.output_format == "json"
        assert [json.loads(line)["message"] for line in stream.getvalue().splitlines()] == ["kept"]
        assert logger.entries == []


class TestErrorLogging:
    """Tests for structured error entries."""

    def test_log_error_includes_error_details(self) -> None:
        stream = StringIO()
        logger = AuditLogger(output_format="json", output_stream=stream)
        error = OutputStoreError(
            code="output_unwritable",
            message="unable to open csv file: out.csv",
            details={"path": "out.csv"},
        )

        entry = logger.log_error("ComparisonRun", "Unable to create output file", error=error)

        assert entry.level is LogLevel.ERROR
        assert entry.data["error_type"] == "OutputStoreError"
        assert entry.data["error"]["code"] == "output_unwritable"
        assert json.loads(stream.getvalue())["data"]["error"]["details"] == {"path": "out.csv"}

    def test_log_error_with_plain_exception(self) -> None:
        logger = AuditLogger(output_stream=StringIO())

        entry = logger.log_error("Test", "failed", error=RuntimeError("boom"), additional_data={"n": 1})

        assert entry.data == {"n": 1, "error_message": "boom", "error_type": "RuntimeError"}

    def test_clear_entries(self) -> None:
        logger = AuditLogger(output_stream=StringIO())
        logger.log(LogLevel.INFO, "Test", "one")

        logger.clear_entries()

        assert logger.entries == []

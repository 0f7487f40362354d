"""
Property-based tests for Audit Logger module.

Uses Hypothesis for property-based testing to verify output formats, level
filtering, and masking of credentials.
"""

import json
from io import StringIO

import pytest
from hypothesis import assume, given, settings
from hypothesis import strategies as st

from paperless_login.audit_logger import AuditLogger, ComponentLogger
from paperless_login.enums import LogLevel
from paperless_login.exceptions import StoreError


# Strategies for generating valid test data

component_name_strategy = st.text(
    alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_-"),
    min_size=1,
    max_size=50,
)

message_strategy = st.text(
    alphabet=st.characters(
        whitelist_categories=('L', 'N', 'P', 'S', 'Z'),
        blacklist_characters='\x00\n\r',
    ),
    min_size=1,
    max_size=200,
)


@st.composite
def non_sensitive_key_strategy(draw) -> str:
    """Generate keys that are NOT sensitive."""
    key = draw(st.text(
        alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz_"),
        min_size=1,
        max_size=20,
    ))
    for pattern in AuditLogger.SENSITIVE_KEYS:
        assume(pattern not in key)
    return key


sensitive_key_strategy = st.sampled_from(sorted(AuditLogger.SENSITIVE_KEYS)).flatmap(
    lambda base: st.sampled_from([base, base.upper(), f"x_{base}", f"{base}_value"])
)

secret_value_strategy = st.text(
    alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789"),
    min_size=12,
    max_size=40,
)


class TestDualFormatProperty:
    """Property-based tests for JSON and text output."""

    @given(
        level=st.sampled_from(list(LogLevel)),
        component=component_name_strategy,
        message=message_strategy,
    )
    @settings(max_examples=100)
    def test_both_formats_written(self, level: LogLevel, component: str, message: str) -> None:
        """
        *For any* entry, 'both' output SHALL contain a JSON line and a text
        line carrying the same level, component and message.
        """
        output = StringIO()
        logger = AuditLogger(output_format="both", output_stream=output)
        entry = logger.log(level, component, message, {"url": "https://paperless.example"})

        json_line, text_line = output.getvalue().rstrip("\n").split("\n")
        parsed = json.loads(json_line)
        assert parsed["level"] == level.value
        assert parsed["component"] == component
        assert parsed["message"] == message
        assert parsed["timestamp"] == entry.timestamp
        assert text_line.startswith(f"[{entry.timestamp}] {level.value.upper()} [{component}]")
        assert message in text_line

    @pytest.mark.parametrize("output_format,lines", [("json", 1), ("text", 1), ("both", 2)])
    def test_line_count_per_format(self, output_format: str, lines: int) -> None:
        output = StringIO()
        AuditLogger(output_format=output_format, output_stream=output).log(
            LogLevel.INFO, "Test", "message"
        )
        assert len(output.getvalue().splitlines()) == lines

    def test_invalid_format_rejected(self) -> None:
        with pytest.raises(ValueError):
            AuditLogger(output_format="xml")


class TestLevelFilterProperty:
    """Property-based tests for minimum level filtering."""

    @given(level=st.sampled_from(list(LogLevel)), min_level=st.sampled_from(list(LogLevel)))
    @settings(max_examples=50)
    def test_entries_below_min_level_dropped(self, level: LogLevel, min_level: LogLevel) -> None:
        """*For any* pair of levels, an entry SHALL be written iff it is at or above the minimum."""
        order = list(LogLevel)
        output = StringIO()
        logger = AuditLogger(output_format="json", output_stream=output, min_level=min_level)

        entry = logger.log(level, "Test", "message")

        expected = order.index(level) >= order.index(min_level)
        assert (entry is not None) == expected
        assert bool(output.getvalue()) == expected
        assert len(logger.entries) == int(expected)


class TestMaskingProperty:
    """Property-based tests for credential masking."""

    @given(key=sensitive_key_strategy, value=secret_value_strategy)
    @settings(max_examples=100)
    def test_sensitive_keys_masked(self, key: str, value: str) -> None:
        """*For any* sensitive key, its value SHALL never appear in the output."""
        output = StringIO()
        logger = AuditLogger(output_format="both", output_stream=output)
        entry = logger.log(LogLevel.INFO, "Test", "message", {key: value, "nested": {key: value}})

        assert value not in output.getvalue()
        assert entry.data[key] == AuditLogger.MASK_VALUE
        assert entry.data["nested"][key] == AuditLogger.MASK_VALUE

    @given(key=non_sensitive_key_strategy(), value=st.integers())
    @settings(max_examples=50)
    def test_other_keys_unchanged(self, key: str, value: int) -> None:
        """*For any* non-sensitive key, the value SHALL be logged unchanged."""
        logger = AuditLogger(output_format="json", output_stream=StringIO())
        entry = logger.log(LogLevel.INFO, "Test", "message", {key: value})
        assert entry.data[key] == value

    @given(value=secret_value_strategy)
    @settings(max_examples=50)
    def test_header_lists_masked(self, value: str) -> None:
        """*For any* sensitive header in a header list, its value SHALL be masked."""
        output = StringIO()
        logger = AuditLogger(output_format="json", output_stream=output)
        entry = logger.log(LogLevel.DEBUG, "Test", "request", {
            "headers": [
                {"name": "Authorization", "value": value},
                {"name": "X-Env", "value": "staging"},
            ],
        })

        assert value not in output.getvalue()
        assert entry.data["headers"][0] == {"name": "Authorization", "value": AuditLogger.MASK_VALUE}
        assert entry.data["headers"][1] == {"name": "X-Env", "value": "staging"}

    def test_masking_does_not_modify_input(self) -> None:
        data = {"password": "hunter22", "user": "alice"}
        AuditLogger(output_format="json", output_stream=StringIO()).log(
            LogLevel.INFO, "Test", "message", data
        )
        assert data["password"] == "hunter22"


class TestErrorContextProperty:
    """Tests for error logging with context."""

    def test_log_error_includes_context(self) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO())
        error = StoreError("write_error", "disk full")

        entry = logger.log_error(
            "Store",
            "Write failed",
            error=error,
            request_url="https://paperless.example/api/",
            response_status_code=500,
            additional_data={"attempt": 1},
        )

        assert entry.level == LogLevel.ERROR
        assert entry.data["error_type"] == "StoreError"
        assert entry.data["error_code"] == "write_error"
        assert entry.data["request_url"] == "https://paperless.example/api/"
        assert entry.data["response_status_code"] == 500
        assert entry.data["attempt"] == 1

    def test_component_logger_binds_name(self) -> None:
        logger = AuditLogger(output_format="json", output_stream=StringIO())
        log = ComponentLogger(logger, "Probe")

        log.debug("one")
        log.info("two")
        log.warn("three")
        log.error("four", error=ValueError("bad"))

        assert [e.component for e in logger.entries] == ["Probe"] * 4
        assert [e.level for e in logger.entries] == list(LogLevel)
        assert logger.entries[-1].data["error_type"] == "ValueError"

    def test_component_logger_without_logger_is_silent(self) -> None:
        log = ComponentLogger(None, "Probe")
        log.info("nothing happens")
        log.error("still nothing", error=ValueError("bad"))

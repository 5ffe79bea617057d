"""
Tests for control-value normalization and wire-value decoding.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from formobs.config import FormsConfig
from formobs.model import CodedAnswer, ComplexValue, ControlKind, ControlNode
from formobs.values import (
    current_timestamp,
    decode_wire_value,
    format_timestamp,
    normalize_value,
)


def control(value, kind=ControlKind.TEXT):
    return ControlNode(id="f/1-0", concept_id="c-1", kind=kind, value=value)


class TestFormatTimestamp:
    """Test canonical timestamp formatting."""

    def test_aware_datetime(self):
        """Aware datetimes are converted to UTC with millisecond precision."""
        value = datetime(2024, 1, 15, 10, 30, 0, 123456, tzinfo=timezone.utc)
        assert format_timestamp(value) == "2024-01-15T10:30:00.123Z"

    def test_other_timezone(self):
        """Non-UTC offsets are shifted to UTC."""
        value = datetime(2024, 1, 15, 12, 30, tzinfo=timezone(timedelta(hours=2)))
        assert format_timestamp(value) == "2024-01-15T10:30:00.000Z"

    def test_naive_datetime_is_utc(self):
        """Naive datetimes are taken as UTC."""
        assert format_timestamp(datetime(2024, 1, 15, 10, 30)) == "2024-01-15T10:30:00.000Z"

    def test_bare_date(self):
        """A date is midnight UTC."""
        assert format_timestamp(date(2024, 1, 15)) == "2024-01-15T00:00:00.000Z"


class TestCurrentTimestamp:
    """Test the per-call timestamp helper."""

    def test_string_passthrough(self):
        """A ready timestamp string is used as is."""
        assert current_timestamp("2024-01-15T10:30:00.000Z") == "2024-01-15T10:30:00.000Z"

    def test_datetime_formatted(self):
        """A datetime is formatted."""
        now = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
        assert current_timestamp(now) == "2024-01-15T10:30:00.000Z"

    def test_default_is_now(self):
        """Without input the current time is used."""
        assert current_timestamp().endswith("Z")


class TestNormalizeValue:
    """Test normalize_value."""

    @pytest.mark.parametrize("value", ["Headache", 98.6, 72, True, False, ""])
    def test_scalars_pass_through(self, value):
        """Scalars and booleans pass through."""
        assert normalize_value(control(value)) == value

    def test_none_passes_through(self):
        assert normalize_value(control(None)) is None

    def test_datetime_to_timestamp(self):
        """Dates serialize to a canonical timestamp string."""
        value = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
        assert normalize_value(control(value, ControlKind.DATE)) == "2024-01-15T10:30:00.000Z"

    def test_select_coded_answer_unchanged(self):
        """A select holding a coded answer passes it through unchanged."""
        answer = CodedAnswer("a-yes", "Yes")
        assert normalize_value(control(answer, ControlKind.SELECT)) is answer

    def test_select_coded_mapping_unchanged(self):
        """A coded answer mapping on a select is not reduced."""
        answer = {"uuid": "a-yes", "display": "Yes", "url": "/concept/a-yes"}
        assert normalize_value(control(answer, ControlKind.SELECT)) is answer

    def test_attachment_reduced_to_url(self):
        """Attachments lose their metadata and keep the reference."""
        value = ComplexValue(url="/files/xray.png", file_name="xray.png", file_size=1024)
        assert normalize_value(control(value)) == "/files/xray.png"

    def test_attachment_mapping_reduced_to_url(self):
        """Any mapping exposing a url is reduced to it."""
        value = {"url": "/files/report.pdf", "contentType": "application/pdf"}
        assert normalize_value(control(value)) == "/files/report.pdf"

    def test_other_objects_pass_through(self):
        """Unknown object shapes pass through unchanged."""
        value = {"systolic": 120, "diastolic": 80}
        assert normalize_value(control(value)) is value

    def test_list_passes_through(self):
        """Lists are not reduced."""
        value = [{"url": "/a"}]
        assert normalize_value(control(value)) is value


class TestDecodeWireValue:
    """Test decode_wire_value."""

    def test_datetime_string_coerced(self):
        """Strings matching the strict datetime pattern become datetimes."""
        result = decode_wire_value("2024-01-15T10:30:00.000Z")
        assert result == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

    @pytest.mark.parametrize("text, microsecond", [
        ("2024-01-15T10:30:00.5Z", 500000),
        ("2024-01-15T10:30:00.12Z", 120000),
        ("2024-01-15T10:30:00.1234567Z", 123456),
    ])
    def test_any_fraction_length(self, text, microsecond):
        """Fractional seconds of any length are accepted."""
        result = decode_wire_value(text)
        assert result == datetime(2024, 1, 15, 10, 30, 0, microsecond, tzinfo=timezone.utc)

    def test_date_only_string_stays_string(self):
        """Date-only strings are not coerced."""
        assert decode_wire_value("2024-01-15") == "2024-01-15"

    def test_unparseable_match_stays_string(self):
        """A string that matches the pattern but cannot parse is kept."""
        assert decode_wire_value("2024-13-45T99:99:99") == "2024-13-45T99:99:99"

    def test_non_strings_unchanged(self):
        answer = CodedAnswer("a-1")
        assert decode_wire_value(answer) is answer
        assert decode_wire_value(42) == 42

    def test_custom_pattern(self):
        """The datetime pattern comes from configuration."""
        config = FormsConfig(datetime_pattern=r"^never$")
        assert decode_wire_value("2024-01-15T10:30:00.000Z", config) == "2024-01-15T10:30:00.000Z"

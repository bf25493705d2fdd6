"""Tests for wire and view models."""

import pytest
from pydantic import ValidationError

from trace_viewer.models import AnyValue, ChildStatus, RawSpan, SearchResponse, SpanInfo, Trace


class TestAnyValue:
    """Tests for typed attribute values."""

    def test_numeric_string_int_is_lossless(self):
        value = AnyValue.model_validate({"intValue": "9007199254740993"})
        assert value.int_value == 9007199254740993
        assert value.value_case == "intValue"

    def test_value_case_for_each_member(self):
        assert AnyValue.model_validate({"stringValue": "x"}).value_case == "stringValue"
        assert AnyValue.model_validate({"boolValue": False}).value_case == "boolValue"
        assert AnyValue.model_validate({"doubleValue": 1.5}).value_case == "doubleValue"
        assert AnyValue.model_validate({"bytesValue": "AAE="}).value_case == "bytesValue"

    def test_empty_value(self):
        value = AnyValue.model_validate({})
        assert value.value_case == "none"
        assert value.value is None

    def test_false_bool_is_populated(self):
        """False is a value, not absence."""
        assert AnyValue.model_validate({"boolValue": False}).value is False

    def test_to_wire_uses_api_keys(self):
        assert AnyValue(int_value=3).to_wire() == {"intValue": 3}


class TestRawSpan:
    """Tests for span nodes of a search response."""

    def test_accepts_span_id_spellings(self):
        assert RawSpan.model_validate({"spanID": "a"}).span_id == "a"
        assert RawSpan.model_validate({"spanId": "b"}).span_id == "b"

    def test_null_numbers_default_to_zero(self):
        span = RawSpan.model_validate(
            {"spanID": "a", "startTimeUnixNano": None, "durationNanos": ""}
        )
        assert span.start_time_unix_nano == 0
        assert span.duration_nanos == 0

    def test_end_time(self):
        span = RawSpan.model_validate(
            {"spanID": "a", "startTimeUnixNano": "1000", "durationNanos": "250"}
        )
        assert span.end_time_unix_nano == 1250

    def test_attribute_lookup(self):
        span = RawSpan.model_validate({
            "spanID": "a",
            "attributes": [
                {"key": "span:parentID", "value": {"stringValue": "p"}},
                {"key": "span:childCount", "value": {"intValue": "2"}},
            ],
        })
        assert span.attribute("span:parentID").string_value == "p"
        assert span.attribute("span:childCount").int_value == 2
        assert span.attribute("missing") is None

    def test_null_attributes(self):
        assert RawSpan.model_validate({"spanID": "a", "attributes": None}).attributes == []


class TestTrace:
    """Tests for trace entries and their span sets."""

    def test_reads_single_span_set(self):
        trace = Trace.model_validate({
            "traceID": "t",
            "spanSet": {"spans": [{"spanID": "a"}], "matched": 4},
        })
        assert [s.span_id for s in trace.spans] == ["a"]
        assert trace.matched == 4

    def test_span_sets_take_precedence(self):
        trace = Trace.model_validate({
            "traceID": "t",
            "spanSet": {"spans": [{"spanID": "old"}]},
            "spanSets": [{"spans": [{"spanID": "a"}]}, {"spans": [{"spanID": "b"}]}],
        })
        assert [s.span_id for s in trace.spans] == ["a", "b"]

    def test_matched_sums_span_sets(self):
        trace = Trace.model_validate({
            "traceID": "t",
            "spanSets": [{"spans": [], "matched": 2}, {"spans": [], "matched": 3}],
        })
        assert trace.matched == 5

    def test_matched_none_when_unreported(self):
        trace = Trace.model_validate({"traceID": "t", "spanSets": [{"spans": []}]})
        assert trace.matched is None

    def test_find_trace(self):
        response = SearchResponse.model_validate({"traces": [{"traceID": "t"}]})
        assert response.find_trace("t").trace_id == "t"
        assert response.find_trace("other") is None

    def test_null_traces(self):
        assert SearchResponse.model_validate({"traces": None}).traces == []


class TestSpanInfo:
    """Tests for the levelled span record."""

    def test_duration_and_root(self):
        span = SpanInfo(
            span_id="a", trace_id="t", start_time_unix_nano=10, end_time_unix_nano=25
        )
        assert span.duration_nanos == 15
        assert span.is_root
        assert span.child_status == ChildStatus.NO_CHILDREN

    def test_rejects_end_before_start(self):
        with pytest.raises(ValidationError):
            SpanInfo(span_id="a", trace_id="t", start_time_unix_nano=10, end_time_unix_nano=5)

    def test_rejects_negative_level(self):
        with pytest.raises(ValidationError):
            SpanInfo(span_id="a", trace_id="t", level=-1)

    def test_json_round_trip_keeps_status(self):
        span = SpanInfo(span_id="a", trace_id="t", child_status=ChildStatus.HIDE_CHILDREN)
        restored = SpanInfo.model_validate(span.model_dump(mode="json"))
        assert restored == span

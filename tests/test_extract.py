"""Tests for span record extraction and child presence resolution."""

import logging

import pytest

from trace_viewer.extract import extract_spans, inline_child_count, resolve_child_presence, sort_span_nodes
from trace_viewer.models import ChildStatus, RawSpan, SearchResponse
from trace_viewer.query import has_children_query

from tests.fakes import BASE_NANOS, SECOND, TRACE_ID, FakeSearchAPI, FakeSpan


def page(*spans, trace_id=TRACE_ID):
    """Build a one-trace search response from raw span dicts."""
    return SearchResponse.model_validate({
        "traces": [{"traceID": trace_id, "spanSets": [{"spans": list(spans)}]}]
    })


def raw(span_id, start=0, duration=SECOND, parent=None, **attrs):
    attributes = []
    if parent is not None:
        attributes.append({"key": "span:parentID", "value": {"stringValue": parent}})
    for key, value in attrs.items():
        attributes.append({"key": key, "value": value})
    return {
        "spanID": span_id,
        "name": span_id.upper(),
        "startTimeUnixNano": str(BASE_NANOS + start),
        "durationNanos": str(duration),
        "attributes": attributes,
    }


class TestSortSpanNodes:
    def test_start_ascending_then_duration_descending(self):
        nodes = [
            RawSpan.model_validate(raw("late", start=5)),
            RawSpan.model_validate(raw("short", start=0, duration=1)),
            RawSpan.model_validate(raw("long", start=0, duration=100)),
        ]
        assert [n.span_id for n in sort_span_nodes(nodes)] == ["long", "short", "late"]


class TestInlineChildCount:
    def test_int_value(self):
        node = RawSpan.model_validate(raw("a", **{"span:childCount": {"intValue": "3"}}))
        assert inline_child_count(node) == 3

    def test_double_value(self):
        node = RawSpan.model_validate(raw("a", **{"span:childCount": {"doubleValue": 2.0}}))
        assert inline_child_count(node) == 2

    def test_absent(self):
        assert inline_child_count(RawSpan.model_validate(raw("a"))) is None


class TestResolveChildPresence:
    """Tests for resolve_child_presence."""

    @pytest.mark.asyncio
    async def test_inline_count_skips_query(self):
        api = FakeSearchAPI([])
        node = RawSpan.model_validate(raw("a", **{"span:childCount": {"intValue": "0"}}))

        presence = await resolve_child_presence(api, TRACE_ID, node)

        assert presence.known is False
        assert presence.count == 0
        assert api.queries == []

    @pytest.mark.asyncio
    async def test_count_query_scoped_to_span_window(self):
        api = FakeSearchAPI([
            FakeSpan("p", "Parent"),
            FakeSpan("c1", "Child", "p"),
            FakeSpan("c2", "Child", "p"),
        ])
        node = RawSpan.model_validate(raw("p", start=0, duration=2 * SECOND))

        presence = await resolve_child_presence(api, TRACE_ID, node)

        assert presence.known is True
        assert presence.count == 2
        query, start, end, spss = api.queries[0]
        assert query == has_children_query(TRACE_ID, "p")
        assert (start, end, spss) == (BASE_NANOS // SECOND, BASE_NANOS // SECOND + 3, 1)

    @pytest.mark.asyncio
    async def test_no_match_means_no_children(self):
        api = FakeSearchAPI([FakeSpan("p", "Parent")])
        node = RawSpan.model_validate(raw("p"))

        presence = await resolve_child_presence(api, TRACE_ID, node)

        assert presence.known is False
        assert presence.count == 0


class TestExtractSpans:
    """Tests for extract_spans."""

    @pytest.mark.asyncio
    async def test_missing_trace_returns_empty(self):
        level_map = {}
        response = page(raw("a"), trace_id="someone-else")

        spans = await extract_spans(level_map, TRACE_ID, FakeSearchAPI([]), response)

        assert spans == []
        assert level_map == {}

    @pytest.mark.asyncio
    async def test_levels_follow_parents(self):
        level_map = {"root": 0}
        response = page(raw("child", start=1, parent="root"))

        spans = await extract_spans(level_map, TRACE_ID, FakeSearchAPI([]), response)

        assert spans[0].level == 1
        assert spans[0].parent_span_id == "root"
        assert level_map["child"] == 1

    @pytest.mark.asyncio
    async def test_parent_earlier_in_same_page(self):
        level_map = {}
        response = page(raw("child", start=1, parent="root"), raw("root", start=0))

        spans = await extract_spans(level_map, TRACE_ID, FakeSearchAPI([]), response)

        assert [(s.span_id, s.level) for s in spans] == [("root", 0), ("child", 1)]

    @pytest.mark.asyncio
    async def test_unknown_parent_becomes_warned_root(self, caplog):
        level_map = {}
        response = page(raw("orphan", parent="ghost"))

        with caplog.at_level(logging.WARNING, logger="trace_viewer.extract"):
            spans = await extract_spans(level_map, TRACE_ID, FakeSearchAPI([]), response)

        assert spans[0].level == 0
        assert spans[0].parent_span_id == "ghost"
        assert "ghost" in spans[0].warning
        assert "ghost" in caplog.text

    @pytest.mark.asyncio
    async def test_skips_nodes_without_id(self):
        node = raw("a")
        del node["spanID"]
        response = page(node, raw("b"))

        spans = await extract_spans({}, TRACE_ID, FakeSearchAPI([]), response)

        assert [s.span_id for s in spans] == ["b"]

    @pytest.mark.asyncio
    async def test_status_from_child_presence(self):
        api = FakeSearchAPI([
            FakeSpan("p", "Parent"),
            FakeSpan("c", "Child", "p"),
            FakeSpan("leaf", "Leaf"),
        ])
        response = page(raw("p", start=0), raw("leaf", start=1))

        spans = await extract_spans({}, TRACE_ID, api, response)

        assert spans[0].child_status == ChildStatus.REMOTE_CHILDREN
        assert spans[0].child_count == 1
        assert spans[1].child_status == ChildStatus.NO_CHILDREN

    @pytest.mark.asyncio
    async def test_service_labels(self):
        response = page(raw(
            "a",
            **{
                "service.name": {"stringValue": "launch-vehicle"},
                "service.namespace": {"stringValue": "apollo"},
                "span:childCount": {"intValue": "0"},
            },
        ))

        spans = await extract_spans({}, TRACE_ID, FakeSearchAPI([]), response)

        assert spans[0].service_name == "launch-vehicle"
        assert spans[0].service_namespace == "apollo"
        assert spans[0].name == "A"

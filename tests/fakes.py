"""In-memory stand-in for the trace search API.

Answers the root, children, child-count and select queries the tree engine
issues, from a flat list of span definitions, the way the query service
does: children queries filter on ``span:parentID``, count queries return the
trace only when something matched, select queries return only the selected
attributes.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

import httpx

from trace_viewer.models import SearchResponse, TagNames

TRACE_ID = "53484b00671b90759570e5fa7aab800c"
BASE_NANOS = 1_700_000_000_000_000_000
SECOND = 10**9

_PARENT = re.compile(r'span:parentID = "([^"]+)"')
_SPAN = re.compile(r'span:id = "([^"]+)"')
_SELECT = re.compile(r"\| select\((.*)\)$")


@dataclass
class FakeSpan:
    span_id: str
    name: str
    parent_id: Optional[str] = None
    start: int = BASE_NANOS
    duration: int = SECOND
    service: str = "mission-control"
    attributes: List[Dict[str, Any]] = field(default_factory=list)


class FakeSearchAPI:
    """Implements ``search``/``search_tags`` over a list of ``FakeSpan``."""

    def __init__(
        self,
        spans: List[FakeSpan],
        trace_id: str = TRACE_ID,
        supports_child_count: bool = False,
    ):
        self.spans = {span.span_id: span for span in spans}
        self.trace_id = trace_id
        self.supports_child_count = supports_child_count
        self.queries: List[Tuple[str, int, int, Optional[int]]] = []
        self.tag_queries: List[str] = []
        self.fail_children_of: Set[str] = set()
        self.failure: Exception = httpx.ConnectError("connection refused")
        self.span_tags: List[str] = []
        self.resource_tags: List[str] = []

    # -------------------------------------------------------------------------

    def children_of(self, span_id: str) -> List[FakeSpan]:
        return [s for s in self.spans.values() if s.parent_id == span_id]

    def queries_containing(self, text: str) -> List[str]:
        return [q for q, *_ in self.queries if text in q]

    def _record(self, span: FakeSpan, selected: Optional[List[str]] = None) -> Dict[str, Any]:
        attributes: List[Dict[str, Any]] = []
        if span.parent_id is not None:
            attributes.append({"key": "span:parentID", "value": {"stringValue": span.parent_id}})
        attributes.append({"key": "service.name", "value": {"stringValue": span.service}})
        if self.supports_child_count:
            attributes.append({
                "key": "span:childCount",
                "value": {"intValue": str(len(self.children_of(span.span_id)))},
            })
        if selected is not None:
            attributes = [a for a in attributes if a["key"] == "span:parentID" and "span:parentID" in selected]
            attributes += [a for a in span.attributes if a["key"] in selected]
        return {
            "spanID": span.span_id,
            "name": span.name,
            "startTimeUnixNano": str(span.start),
            "durationNanos": str(span.duration),
            "attributes": attributes,
        }

    def _response(self, spans: List[Dict[str, Any]], matched: Optional[int] = None) -> SearchResponse:
        if not spans and not matched:
            return SearchResponse.model_validate({"traces": []})
        span_set: Dict[str, Any] = {"spans": spans}
        if matched is not None:
            span_set["matched"] = matched
        return SearchResponse.model_validate({
            "traces": [{
                "traceID": self.trace_id,
                "rootServiceName": "mission-control",
                "spanSets": [span_set],
            }]
        })

    @staticmethod
    def _selected_names(query: str) -> List[str]:
        match = _SELECT.search(query)
        if not match:
            return []
        names = []
        for item in match.group(1).split(", "):
            for prefix in ("span.", "resource."):
                if item.startswith(prefix):
                    item = item[len(prefix):]
            names.append(item.strip('"'))
        return names

    # -------------------------------------------------------------------------

    async def search(self, query: str, start: int, end: int, spss: Optional[int] = None) -> SearchResponse:
        self.queries.append((query, start, end, spss))

        if "nestedSetParent = -1" in query:
            roots = [s for s in self.spans.values() if s.parent_id is None]
            return self._response([self._record(s) for s in roots])

        parent = _PARENT.search(query)
        if parent:
            children = self.children_of(parent.group(1))
            if "count() > 0" in query:
                return self._response([self._record(c) for c in children[:1]], len(children))
            if parent.group(1) in self.fail_children_of:
                raise self.failure
            return self._response([self._record(c) for c in children])

        single = _SPAN.search(query)
        if single and single.group(1) in self.spans:
            span = self.spans[single.group(1)]
            return self._response([self._record(span, self._selected_names(query))])

        return self._response([])

    async def search_tags(self, query: str, start: int, end: int) -> TagNames:
        self.tag_queries.append(query)
        return TagNames(span_tags=self.span_tags, resource_tags=self.resource_tags)


def mission_control_spans() -> List[FakeSpan]:
    """MissionControl -> 3 children; CountdownSequence -> RocketLaunch -> 5 children."""
    t = BASE_NANOS
    spans = [
        FakeSpan("a000000000000001", "MissionControl", None, t, 60 * SECOND),
        FakeSpan("a000000000000002", "PreLaunchChecks", "a000000000000001", t + SECOND, 5 * SECOND),
        FakeSpan("a000000000000003", "CountdownSequence", "a000000000000001", t + 10 * SECOND, 30 * SECOND),
        FakeSpan("a000000000000004", "TelemetryStream", "a000000000000001", t + 45 * SECOND, 10 * SECOND),
        FakeSpan("a000000000000005", "RocketLaunch", "a000000000000003", t + 11 * SECOND, 25 * SECOND),
    ]
    for i, name in enumerate(
        ["EngineSystem", "FuelSystem", "GuidanceSystem", "StageSeparation", "LunarRide"]
    ):
        spans.append(
            FakeSpan(
                f"b00000000000000{i}",
                name,
                "a000000000000005",
                t + (12 + i) * SECOND,
                2 * SECOND,
                service="launch-vehicle",
            )
        )
    return spans


def mission_control_api(**kwargs) -> FakeSearchAPI:
    return FakeSearchAPI(mission_control_spans(), **kwargs)


def span_id_by_name(spans, name: str) -> str:
    for span in spans:
        if span.name == name:
            return span.span_id
    raise KeyError(name)

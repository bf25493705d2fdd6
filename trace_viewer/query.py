"""Filter-query (TraceQL) builders and time window helpers.

Every query the tree engine issues is built here so the exact strings can be
asserted in tests. Queries have the shape::

    { trace:id = "<id>" && span:parentID = "<id>" } | select(span:name, ...)

Timestamps from the API are nanoseconds since the epoch; the search endpoint
takes whole epoch seconds.
"""

import re
from typing import Iterable, Tuple

# Intrinsic attribute names returned by the search API.
PARENT_ID_TAG = "span:parentID"
CHILD_COUNT_TAG = "span:childCount"
SPAN_NAME_TAG = "span:name"

# Resource attributes used for the service labels of a span.
SERVICE_NAME_TAG = "service.name"
SERVICE_NAMESPACE_TAG = "service.namespace"

# The time index of the query service rounds timestamps; span windows are
# widened by this much past the span's own end.
END_EPSILON_SECONDS = 1

_NEEDS_QUOTING = re.compile(r"[\s\d]")


def _quote_value(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def scoped_tag(scope: str, tag: str) -> str:
    """Render ``tag`` under ``scope`` (span, resource), quoting when needed.

    Tag names containing whitespace or digits are quoted:
    ``span."event.1700000000"``.
    """
    if _NEEDS_QUOTING.search(tag):
        return f"{scope}.{_quote_value(tag)}"
    return f"{scope}.{tag}"


def select(filter_query: str, tags: Iterable[str]) -> str:
    """Append a ``select(...)`` stage to a filter."""
    return f"{filter_query} | select({', '.join(tags)})"


def span_filter(trace_id: str, span_id: str) -> str:
    """Filter matching a single span of a trace."""
    return f"{{ trace:id = {_quote_value(trace_id)} && span:id = {_quote_value(span_id)} }}"


def children_filter(trace_id: str, parent_span_id: str) -> str:
    """Filter matching the direct children of a span."""
    return (
        f"{{ trace:id = {_quote_value(trace_id)} "
        f"&& span:parentID = {_quote_value(parent_span_id)} }}"
    )


def _span_record_tags(supports_child_count: bool):
    tags = [
        SPAN_NAME_TAG,
        PARENT_ID_TAG,
        f"resource.{SERVICE_NAME_TAG}",
        f"resource.{SERVICE_NAMESPACE_TAG}",
    ]
    if supports_child_count:
        tags.append(CHILD_COUNT_TAG)
    return tags


def root_spans_query(trace_id: str, supports_child_count: bool = False) -> str:
    """Query for the parentless spans of a trace."""
    filter_query = f"{{ trace:id = {_quote_value(trace_id)} && nestedSetParent = -1 }}"
    return select(filter_query, _span_record_tags(supports_child_count))


def children_query(
    trace_id: str,
    parent_span_id: str,
    supports_child_count: bool = False,
) -> str:
    """Query for the direct children of a span, with their record tags."""
    return select(
        children_filter(trace_id, parent_span_id),
        _span_record_tags(supports_child_count),
    )


def has_children_query(trace_id: str, span_id: str) -> str:
    """Query that matches the trace only if the span has children."""
    return f"{children_filter(trace_id, span_id)} | count() > 0"


# =============================================================================
# TIME WINDOWS
# =============================================================================

def epoch_seconds_from_nanos(nanos: int) -> int:
    return nanos // 10**9


def epoch_seconds_from_millis(millis: int) -> int:
    return millis // 1000


def span_window(start_time_unix_nano: int, end_time_unix_nano: int) -> Tuple[int, int]:
    """Search window in epoch seconds covering a span.

    The end is widened by ``END_EPSILON_SECONDS`` so children ending within
    the same rounded second are not cut off.
    """
    start = epoch_seconds_from_nanos(start_time_unix_nano)
    end = epoch_seconds_from_nanos(end_time_unix_nano) + END_EPSILON_SECONDS
    return start, end


def valid_end(start: int, end: int) -> int:
    """The search API rejects windows whose end is not after the start."""
    return end if start < end else end + 1

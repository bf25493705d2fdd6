"""Turn pages of raw span nodes into levelled ``SpanInfo`` records.

A page is one search response. Spans are requested parent-before-child (roots
first, then the children of an already-extracted span), so a single forward
pass over a page, updating a shared ``span_id -> level`` map, is enough to
level every span.
"""

import logging
from typing import Dict, List, Optional

from .models import ChildPresence, ChildStatus, RawSpan, SearchResponse, SpanInfo
from .query import (
    CHILD_COUNT_TAG,
    PARENT_ID_TAG,
    SERVICE_NAME_TAG,
    SERVICE_NAMESPACE_TAG,
    has_children_query,
    span_window,
)

logger = logging.getLogger(__name__)


def sort_span_nodes(nodes: List[RawSpan]) -> List[RawSpan]:
    """Waterfall order: earliest start first, longest first among ties."""
    return sorted(nodes, key=lambda n: (n.start_time_unix_nano, -n.duration_nanos))


def parent_span_id(node: RawSpan) -> Optional[str]:
    value = node.attribute(PARENT_ID_TAG)
    if value is None or not value.string_value:
        return None
    return value.string_value


def inline_child_count(node: RawSpan) -> Optional[int]:
    """Child count annotated by the backend, if any."""
    value = node.attribute(CHILD_COUNT_TAG)
    if value is None:
        return None
    if value.int_value is not None:
        return value.int_value
    if value.double_value is not None:
        return int(value.double_value)
    if value.string_value and value.string_value.isdigit():
        return int(value.string_value)
    return None


def _string_attribute(node: RawSpan, key: str) -> Optional[str]:
    value = node.attribute(key)
    if value is None:
        return None
    return value.string_value


async def resolve_child_presence(
    search_api,
    trace_id: str,
    node: RawSpan,
) -> ChildPresence:
    """Decide whether a span has children.

    An inline ``span:childCount`` is used when present. Otherwise a count
    query scoped to the span's window is issued; the trace is returned only
    when at least one child matched.
    """
    count = inline_child_count(node)
    if count is not None:
        return ChildPresence(known=count > 0, count=count)

    start, end = span_window(node.start_time_unix_nano, node.end_time_unix_nano)
    response = await search_api.search(
        has_children_query(trace_id, node.span_id), start, end, 1
    )
    trace = response.find_trace(trace_id)
    if trace is None:
        return ChildPresence(known=False, count=0)
    matched = trace.matched
    return ChildPresence(known=matched is None or matched > 0, count=matched)


async def extract_spans(
    level_map: Dict[str, int],
    trace_id: str,
    search_api,
    response: SearchResponse,
) -> List[SpanInfo]:
    """Level and order one page of spans.

    Parameters
    ----------
    level_map : Dict[str, int]
        Levels of spans extracted so far; updated in place.
    trace_id : str
        Trace the page belongs to.
    search_api
        Search primitive used for child presence queries.
    response : SearchResponse
        The page.

    Returns
    -------
    List[SpanInfo]
        Records in waterfall order. Empty when the trace is not in the page.
    """
    trace = response.find_trace(trace_id)
    if trace is None:
        logger.debug(f"Trace {trace_id} not in response, nothing to extract")
        return []

    spans: List[SpanInfo] = []
    for node in sort_span_nodes(trace.spans):
        if not node.span_id:
            continue

        parent_id = parent_span_id(node)
        warning = None
        if parent_id is None:
            level = 0
        elif parent_id in level_map:
            level = level_map[parent_id] + 1
        else:
            level = 0
            warning = (
                f"Parent span {parent_id} was not found in trace {trace_id}; "
                f"showing this span as a root"
            )
            logger.warning(f"Span {node.span_id}: {warning}")
        level_map[node.span_id] = level

        presence = await resolve_child_presence(search_api, trace_id, node)
        spans.append(
            SpanInfo(
                span_id=node.span_id,
                parent_span_id=parent_id,
                trace_id=trace_id,
                level=level,
                start_time_unix_nano=node.start_time_unix_nano,
                end_time_unix_nano=node.end_time_unix_nano,
                name=node.name or "",
                service_name=_string_attribute(node, SERVICE_NAME_TAG),
                service_namespace=_string_attribute(node, SERVICE_NAMESPACE_TAG),
                child_status=(
                    ChildStatus.REMOTE_CHILDREN if presence.known else ChildStatus.NO_CHILDREN
                ),
                child_count=presence.count,
                warning=warning,
            )
        )

    logger.debug(f"Extracted {len(spans)} spans for trace {trace_id}")
    return spans

"""Attribute detail of a span, fetched with length-bounded select queries.

A span can carry hundreds of attributes; selecting them all in one query
produces a query string the service rejects. Tags are packed into groups
whose serialized length stays under ``MAX_SELECT_LENGTH``, one query per
group is issued concurrently, and the results are merged back together.
"""

import asyncio
import logging
import re
from typing import Dict, List, Sequence, Tuple

from .models import AnyValue, SearchResponse, SpanAttributes, SpanEvent, SpanInfo
from .query import PARENT_ID_TAG, scoped_tag, select, span_filter, span_window

logger = logging.getLogger(__name__)

# Upper bound on the serialized select list of one query.
MAX_SELECT_LENGTH = 1500

# Separator between tags in a select list.
_SEPARATOR = ", "

EVENT_KEY = re.compile(r"^event\.(\d+)$")


def partition_tags(
    span_tags: Sequence[str],
    resource_tags: Sequence[str],
    max_length: int = MAX_SELECT_LENGTH,
) -> List[List[str]]:
    """Pack scoped tags into groups bounded by ``max_length`` characters.

    The first group always starts with the parent-id tag, which ties each
    result back to the span's place in the tree. A tag that is longer than
    ``max_length`` on its own gets a group to itself.
    """
    scoped = [scoped_tag("span", tag) for tag in span_tags]
    scoped += [scoped_tag("resource", tag) for tag in resource_tags]

    groups: List[List[str]] = [[PARENT_ID_TAG]]
    length = len(PARENT_ID_TAG)
    for tag in scoped:
        extra = len(_SEPARATOR) + len(tag)
        if length + extra > max_length:
            groups.append([tag])
            length = len(tag)
            continue
        groups[-1].append(tag)
        length += extra
    return groups


def _span_values(response: SearchResponse, span: SpanInfo) -> List[Tuple[str, AnyValue]]:
    trace = response.find_trace(span.trace_id)
    if trace is None:
        return []
    nodes = trace.spans
    for node in nodes:
        # An id-less node can only be trusted when it is the sole result.
        if node.span_id == span.span_id or (node.span_id is None and len(nodes) == 1):
            return [
                (attr.key, attr.value)
                for attr in node.attributes
                if attr.key and attr.value is not None
            ]
    return []


def split_events(
    span_attributes: Dict[str, AnyValue],
) -> Tuple[Dict[str, AnyValue], List[SpanEvent]]:
    """Move ``event.<timestamp>`` pseudo-attributes into an ordered list."""
    remaining: Dict[str, AnyValue] = {}
    events: List[SpanEvent] = []
    for key, value in span_attributes.items():
        match = EVENT_KEY.match(key)
        if match:
            events.append(SpanEvent(time=int(match.group(1)), value=value))
        else:
            remaining[key] = value
    events.sort(key=lambda e: e.time)
    return remaining, events


async def get_attributes(
    search_api,
    span: SpanInfo,
    span_tags: Sequence[str],
    resource_tags: Sequence[str],
    max_length: int = MAX_SELECT_LENGTH,
) -> SpanAttributes:
    """Fetch and classify all attributes of ``span``.

    Parameters
    ----------
    search_api
        Search primitive (see ``api.DatasourceClient``).
    span : SpanInfo
        The span to describe.
    span_tags, resource_tags : Sequence[str]
        Attribute names discovered for the span, per scope.

    Returns
    -------
    SpanAttributes
        Span attributes, resource attributes and events.
    """
    filter_query = span_filter(span.trace_id, span.span_id)
    start, end = span_window(span.start_time_unix_nano, span.end_time_unix_nano)
    groups = partition_tags(span_tags, resource_tags, max_length)
    logger.debug(f"Fetching attributes of span {span.span_id} in {len(groups)} queries")

    responses = await asyncio.gather(
        *(search_api.search(select(filter_query, group), start, end, 1) for group in groups)
    )

    resource_names = set(resource_tags)
    span_attributes: Dict[str, AnyValue] = {}
    resource_attributes: Dict[str, AnyValue] = {}
    for response in responses:
        for key, value in _span_values(response, span):
            if key == PARENT_ID_TAG:
                continue
            if key in resource_names:
                resource_attributes[key] = value
            else:
                span_attributes[key] = value

    span_attributes, events = split_events(span_attributes)
    return SpanAttributes(
        span_attributes=span_attributes,
        resource_attributes=resource_attributes,
        events=events,
    )

"""Incremental loading of one trace's span tree.

``TraceLoader`` owns the ordered span list of a single (datasource, trace)
pair and is its only writer. Every change computes a new list from the
current one and publishes it as a whole to subscribers, so a renderer never
sees a half-applied merge.
"""

import logging
from typing import Callable, Dict, List, Sequence, Set

from .attributes import get_attributes
from .errors import MissingParameterError
from .extract import extract_spans
from .models import ChildStatus, SpanAttributes, SpanInfo
from .query import (
    children_query,
    epoch_seconds_from_millis,
    root_spans_query,
    span_filter,
    span_window,
)
from .tree import (
    Trigger,
    collapse_all,
    has_expanded_spans,
    hide_children,
    index_of,
    merge_children,
    next_status,
    show_children,
    visible_indices,
    with_status,
)

logger = logging.getLogger(__name__)

# Page size for children loads; large enough to mean "all of them".
MAX_SPANS_PER_SPAN_SET = 10_000

Subscriber = Callable[[List[SpanInfo]], None]


class TraceLoader:
    """Single-writer container for the span list of a trace.

    Parameters
    ----------
    search_api
        Search primitive with ``search``, ``search_tags`` and a
        ``supports_child_count`` flag (see ``api.DatasourceClient``).
    trace_id : str
        Trace to load.
    start_time_ms : int
        Trace start in epoch milliseconds; bounds the root span query.
    """

    def __init__(self, search_api, trace_id: str, start_time_ms: int = 0):
        if search_api is None:
            raise MissingParameterError("datasource")
        if not trace_id:
            raise MissingParameterError("trace_id")
        self.search_api = search_api
        self.trace_id = trace_id
        self.start_time_ms = start_time_ms
        self._spans: List[SpanInfo] = []
        self._level_map: Dict[str, int] = {}
        self._in_flight: Set[str] = set()
        self._subscribers: List[Subscriber] = []

    @classmethod
    def from_snapshot(
        cls,
        search_api,
        trace_id: str,
        spans: Sequence[SpanInfo],
        start_time_ms: int = 0,
    ) -> "TraceLoader":
        """Rebuild a loader around a previously published list."""
        loader = cls(search_api, trace_id, start_time_ms)
        loader._spans = list(spans)
        loader._level_map = {span.span_id: span.level for span in spans}
        return loader

    # -------------------------------------------------------------------------
    # Published state
    # -------------------------------------------------------------------------

    @property
    def spans(self) -> List[SpanInfo]:
        return list(self._spans)

    @property
    def visible_indices(self) -> List[int]:
        return visible_indices(self._spans)

    @property
    def visible_spans(self) -> List[SpanInfo]:
        return [self._spans[i] for i in visible_indices(self._spans)]

    @property
    def has_expanded_spans(self) -> bool:
        return has_expanded_spans(self._spans)

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Call ``callback`` with every new list; returns an unsubscribe function."""
        self._subscribers.append(callback)
        return lambda: self._subscribers.remove(callback)

    def find(self, span_id: str) -> SpanInfo:
        i = index_of(self._spans, span_id)
        if i < 0:
            raise KeyError(f"Span {span_id} not loaded for trace {self.trace_id}")
        return self._spans[i]

    def _replace(self, spans: List[SpanInfo]) -> None:
        self._spans = spans
        for callback in list(self._subscribers):
            callback(list(spans))

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    async def load_initial(self) -> List[SpanInfo]:
        """Load the root spans; a single root gets its children right away."""
        start = epoch_seconds_from_millis(self.start_time_ms)
        query = root_spans_query(self.trace_id, self.search_api.supports_child_count)
        response = await self.search_api.search(query, start, start + 1)

        self._level_map = {}
        self._in_flight = set()
        roots = await extract_spans(self._level_map, self.trace_id, self.search_api, response)
        self._replace(roots)
        logger.info(f"Loaded {len(roots)} root spans for trace {self.trace_id}")

        if len(roots) == 1 and roots[0].child_status == ChildStatus.REMOTE_CHILDREN:
            await self.expand(roots[0].span_id)
        return self.spans

    async def load_children(self, span: SpanInfo) -> List[SpanInfo]:
        """Fetch and level the direct children of ``span``."""
        start, end = span_window(span.start_time_unix_nano, span.end_time_unix_nano)
        query = children_query(
            self.trace_id, span.span_id, self.search_api.supports_child_count
        )
        response = await self.search_api.search(query, start, end, MAX_SPANS_PER_SPAN_SET)
        return await extract_spans(self._level_map, self.trace_id, self.search_api, response)

    def start_load(self, span_id: str) -> bool:
        """Mark a span as loading. Returns False if a load is already running."""
        if span_id in self._in_flight:
            logger.debug(f"Children of {span_id} already loading, ignoring")
            return False
        span = self.find(span_id)
        status = next_status(span, Trigger.EXPAND)
        self._in_flight.add(span_id)
        self._replace(with_status(self._spans, span_id, status))
        return True

    async def finish_load(self, span_id: str) -> None:
        """Fetch the children of a loading span and merge them in.

        On any failure of the query layer (transport, an unparseable body,
        an invalid response) the span goes back to ``REMOTE_CHILDREN`` so
        the user can retry, and the error is re-raised.
        """
        span = self.find(span_id)
        try:
            children = await self.load_children(span)
        except Exception as e:
            logger.error(f"Error loading children of span {span_id}: {e!r}")
            self._in_flight.discard(span_id)
            current = self.find(span_id)
            if current.child_status == ChildStatus.LOADING_CHILDREN:
                self._replace(
                    with_status(self._spans, span_id, next_status(current, Trigger.LOAD_FAILED))
                )
            raise

        self._in_flight.discard(span_id)
        # Merge against the latest list, not the one the load started from.
        self._replace(merge_children(self._spans, span_id, children))
        logger.info(f"Merged {len(children)} children under span {span_id}")

    # -------------------------------------------------------------------------
    # User actions
    # -------------------------------------------------------------------------

    async def expand(self, span_id: str) -> None:
        """Show a span's children, fetching them the first time."""
        span = self.find(span_id)
        if span.child_status == ChildStatus.HIDE_CHILDREN:
            self._replace(show_children(self._spans, span_id))
            return
        if self.start_load(span_id):
            await self.finish_load(span_id)

    def collapse(self, span_id: str) -> None:
        """Hide a span's children; nothing is fetched or dropped."""
        self._replace(hide_children(self._spans, span_id))

    async def toggle_load(self, span_id: str) -> None:
        """Dispatch a click on a span's expand/collapse control."""
        status = self.find(span_id).child_status
        if status == ChildStatus.SHOW_CHILDREN:
            self.collapse(span_id)
        elif status in (ChildStatus.REMOTE_CHILDREN, ChildStatus.HIDE_CHILDREN):
            await self.expand(span_id)
        else:
            logger.debug(f"Span {span_id} is {status.value}, nothing to toggle")

    def collapse_all(self) -> None:
        if not self.has_expanded_spans:
            return
        self._replace(collapse_all(self._spans))

    # -------------------------------------------------------------------------
    # Span detail
    # -------------------------------------------------------------------------

    async def span_details(self, span_id: str) -> SpanAttributes:
        """Attributes, resource attributes and events of a span."""
        span = self.find(span_id)
        start, end = span_window(span.start_time_unix_nano, span.end_time_unix_nano)
        tags = await self.search_api.search_tags(
            span_filter(self.trace_id, span.span_id), start, end
        )
        return await get_attributes(
            self.search_api, span, tags.span_tags, tags.resource_tags
        )

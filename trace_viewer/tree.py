"""Pure operations on the ordered span list of a trace.

The list is kept in pre-order: the loaded children of a span form a
contiguous run right after it, before the next span whose level is at most
its own. Every function here takes a list and returns a new one; spans whose
status changes are copied, so a list that has been published is never
mutated afterwards.
"""

import logging
from enum import Enum
from typing import Dict, List, Sequence, Set

from .errors import InvalidTransitionError
from .models import ChildStatus, SpanInfo

logger = logging.getLogger(__name__)


class Trigger(str, Enum):
    """Events that move a span through the child status state machine."""

    EXPAND = "expand"
    COLLAPSE = "collapse"
    LOAD_COMPLETE = "load_complete"
    LOAD_FAILED = "load_failed"


TRANSITIONS: Dict[tuple, ChildStatus] = {
    (ChildStatus.REMOTE_CHILDREN, Trigger.EXPAND): ChildStatus.LOADING_CHILDREN,
    (ChildStatus.LOADING_CHILDREN, Trigger.LOAD_COMPLETE): ChildStatus.SHOW_CHILDREN,
    (ChildStatus.LOADING_CHILDREN, Trigger.LOAD_FAILED): ChildStatus.REMOTE_CHILDREN,
    (ChildStatus.SHOW_CHILDREN, Trigger.COLLAPSE): ChildStatus.HIDE_CHILDREN,
    (ChildStatus.HIDE_CHILDREN, Trigger.EXPAND): ChildStatus.SHOW_CHILDREN,
}


def next_status(span: SpanInfo, trigger: Trigger) -> ChildStatus:
    """Look up the status ``span`` moves to on ``trigger``.

    Raises
    ------
    InvalidTransitionError
        If the table has no entry, e.g. expanding a span without children.
    """
    try:
        return TRANSITIONS[(span.child_status, trigger)]
    except KeyError:
        raise InvalidTransitionError(
            span.span_id, span.child_status.value, trigger.value
        ) from None


def index_of(spans: Sequence[SpanInfo], span_id: str) -> int:
    """Position of ``span_id`` in ``spans``, or -1."""
    for i, span in enumerate(spans):
        if span.span_id == span_id:
            return i
    return -1


def with_status(spans: Sequence[SpanInfo], span_id: str, status: ChildStatus) -> List[SpanInfo]:
    """Copy of ``spans`` with one span's status replaced."""
    result = list(spans)
    i = index_of(result, span_id)
    if i < 0:
        raise KeyError(span_id)
    result[i] = result[i].model_copy(update={"child_status": status})
    return result


def merge_children(
    spans: Sequence[SpanInfo],
    parent_span_id: str,
    children: Sequence[SpanInfo],
) -> List[SpanInfo]:
    """Splice freshly loaded children right after their parent.

    Children already present in the list (a duplicate load result) are
    skipped. The parent becomes ``SHOW_CHILDREN``, or ``NO_CHILDREN`` when the
    load came back empty.
    """
    i = index_of(spans, parent_span_id)
    if i < 0:
        logger.warning(f"Parent span {parent_span_id} not in list, dropping {len(children)} children")
        return list(spans)

    present = {span.span_id for span in spans}
    new_children = [child for child in children if child.span_id not in present]
    if len(new_children) < len(children):
        logger.debug(
            f"Skipped {len(children) - len(new_children)} children of {parent_span_id} already in list"
        )

    parent = spans[i]
    loaded = len(new_children) + sum(1 for s in spans if s.parent_span_id == parent_span_id)
    if loaded == 0:
        parent = parent.model_copy(update={"child_status": ChildStatus.NO_CHILDREN, "child_count": 0})
    else:
        update = {"child_status": ChildStatus.SHOW_CHILDREN}
        if parent.child_count is None:
            update["child_count"] = loaded
        parent = parent.model_copy(update=update)

    return [*spans[:i], parent, *new_children, *spans[i + 1:]]


def hide_children(spans: Sequence[SpanInfo], span_id: str) -> List[SpanInfo]:
    """Collapse a span and every loaded descendant that is showing children.

    Descendants are found in one forward pass: a span is a descendant if its
    parent is already in the set, which holds because descendants always
    follow their ancestor in the list.
    """
    result = list(spans)
    start = index_of(result, span_id)
    if start < 0:
        raise KeyError(span_id)

    span = result[start]
    result[start] = span.model_copy(update={"child_status": next_status(span, Trigger.COLLAPSE)})

    to_hide: Set[str] = {span_id}
    for i in range(start + 1, len(result)):
        descendant = result[i]
        if descendant.parent_span_id not in to_hide:
            continue
        to_hide.add(descendant.span_id)
        if descendant.child_status == ChildStatus.SHOW_CHILDREN:
            result[i] = descendant.model_copy(update={"child_status": ChildStatus.HIDE_CHILDREN})
    return result


def show_children(spans: Sequence[SpanInfo], span_id: str) -> List[SpanInfo]:
    """Re-expand a collapsed span; descendants keep their own status."""
    i = index_of(spans, span_id)
    if i < 0:
        raise KeyError(span_id)
    return with_status(spans, span_id, next_status(spans[i], Trigger.EXPAND))


def collapse_all(spans: Sequence[SpanInfo]) -> List[SpanInfo]:
    """Collapse every span currently showing children. Idempotent."""
    return [
        span.model_copy(update={"child_status": ChildStatus.HIDE_CHILDREN})
        if span.child_status == ChildStatus.SHOW_CHILDREN and (span.child_count or 0) > 0
        else span
        for span in spans
    ]


def has_expanded_spans(spans: Sequence[SpanInfo]) -> bool:
    """Whether collapse-all would change anything."""
    return any(span.child_status == ChildStatus.SHOW_CHILDREN for span in spans)


def visible_indices(spans: Sequence[SpanInfo]) -> List[int]:
    """Indices of the spans the renderer should show.

    A span is hidden when any ancestor is collapsed. Hidden spans propagate
    the collapse to their own subtree whatever their own status is.
    """
    collapsed: Set[str] = set()
    result: List[int] = []
    for i, span in enumerate(spans):
        if span.parent_span_id is not None and span.parent_span_id in collapsed:
            collapsed.add(span.span_id)
            continue
        if span.child_status == ChildStatus.HIDE_CHILDREN:
            collapsed.add(span.span_id)
        result.append(i)
    return result

"""Error types raised by the trace tree engine.

Missing data and structural anomalies (a span whose parent is unknown) are
never raised: they resolve to empty results or to a warning on the span.
Transport failures surface as the httpx exceptions raised by ``api``.
"""


class TraceViewerError(Exception):
    """Base class for trace viewer errors."""


class MissingParameterError(TraceViewerError, ValueError):
    """A required identifier (trace id, datasource uid) was empty."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"{name} is required")


class InvalidTransitionError(TraceViewerError):
    """A span was asked to change child status in a way the table forbids."""

    def __init__(self, span_id: str, status: str, trigger: str):
        self.span_id = span_id
        self.status = status
        self.trigger = trigger
        super().__init__(
            f"Span {span_id}: cannot {trigger} while in state {status}"
        )

"""Reactive state for the trace viewer page.

The span tree itself is owned by ``TraceLoader``; this state keeps the last
published span list in serialized form and rebuilds a loader around it for
every event, so all tree logic stays in the engine modules.

The state is organized into logical sections:
    - Base State Variables: published span list, selection, UI flags
    - Data Loading Methods: initial load and span detail lookup
    - Computed Vars by Component: pre-computed rows for each UI component
    - Event Handlers: expand/collapse/select handlers
    - Helper Methods: formatting and loader plumbing

Note
----
Reflex components cannot use Python methods like `.get()`, `len()`, or f-strings
on rx.Var objects at runtime. All such operations must be pre-computed in state
as computed vars (decorated with @rx.var).
"""

import reflex as rx
from datetime import datetime, timezone
from typing import Any, Dict, List

from . import api
from .colours import ColourAssigner
from .loader import TraceLoader
from .models import AnyValue, ChildStatus, SpanAttributes, SpanInfo
from .tree import has_expanded_spans, index_of, visible_indices


# Default placeholder for missing values
PLACEHOLDER = "—"


class TraceViewerState(rx.State):
    """Reactive state for one trace view.

    Attributes
    ----------
    spans : List[Dict[str, Any]]
        Ordered span list of the trace, as published by ``TraceLoader``.
    loading : bool
        Whether the initial load is in progress.
    error_message : str
        Current error message to display, if any.
    selected_span_id : str
        Span whose details are open, empty if none.
    selected_attributes : Dict[str, Any]
        Serialized ``SpanAttributes`` of the selected span.
    """

    # -------------------------------------------------------------------------
    # Base State Variables
    # -------------------------------------------------------------------------

    spans: List[Dict[str, Any]] = []
    loading: bool = False
    healthy: bool = True
    error_message: str = ""

    selected_span_id: str = ""
    selected_attributes: Dict[str, Any] = {}
    details_loading: bool = False

    # =========================================================================
    # COMPUTED VARS: Router
    # =========================================================================

    @rx.var
    def current_trace_id(self) -> str:
        """Get trace_id from current route parameters."""
        return self.router.page.params.get("trace_id", "")

    @rx.var
    def current_datasource_uid(self) -> str:
        """Get datasource_uid from current route parameters."""
        return self.router.page.params.get("datasource_uid", "")

    @rx.var
    def current_start_ms(self) -> int:
        """Trace start in epoch milliseconds from the ``start`` query param."""
        return self._safe_int(self.router.page.params.get("start", 0))

    # =========================================================================
    # DATA LOADING METHODS
    # =========================================================================

    async def load_current_trace(self) -> None:
        """Load the root spans of the trace named in the route.

        Used as on_load handler for the trace page. A missing trace id or
        datasource uid fails the whole view; a failed first expand keeps the
        roots that did load so the user can retry.
        """
        self.loading = True
        self.error_message = ""
        self.selected_span_id = ""
        self.selected_attributes = {}
        self.spans = []  # New trace, new list
        try:
            loader = TraceLoader(
                api.DatasourceClient(self.current_datasource_uid),
                self.current_trace_id,
                self.current_start_ms,
            )
            self.error_message = await self._load_initial_spans(loader)
            self._publish(loader)
        except Exception as e:
            self.error_message = str(e)
        finally:
            self.loading = False

    async def check_health(self) -> None:
        """Check if Grafana is reachable and update state."""
        self.healthy = await api.check_health()

    async def select_span(self, span_id: str):
        """Open the detail drawer for a span and fetch its attributes."""
        self.selected_span_id = span_id
        self.selected_attributes = {}
        self.details_loading = True
        yield
        try:
            details = await self._loader().span_details(span_id)
            self.selected_attributes = details.model_dump(mode="json", by_alias=True)
        except Exception as e:
            self.error_message = str(e)
        finally:
            self.details_loading = False

    # =========================================================================
    # COMPUTED VARS: Span List Component
    # =========================================================================

    @rx.var(cache=True)
    def has_spans(self) -> bool:
        return len(self.spans) > 0

    @rx.var(cache=True)
    def can_collapse_all(self) -> bool:
        """Collapse-all is enabled exactly when some span shows children."""
        return has_expanded_spans(self._span_models())

    @rx.var(cache=True)
    def visible_rows(self) -> List[Dict[str, Any]]:
        """Visible spans enriched with display values.

        Adds to each span:
            - indent_style: Left padding by level
            - has_toggle / is_loading: Expand control state
            - child_count_label: Reported number of direct children
            - has_warning: Structural anomaly flag
            - duration_formatted: Human-readable duration
            - colour: Bar colour by service namespace
            - left_pct_str / width_pct_str: Bar position within the trace
        """
        models = self._span_models()
        if not models:
            return []

        # Colours are assigned over the whole list so they don't shift when
        # spans are hidden.
        colours = ColourAssigner()
        span_colours = [colours.colour_for(s.service_namespace) for s in models]

        trace_start = models[0].start_time_unix_nano
        trace_duration = max(models[0].duration_nanos, 1)

        result: List[Dict[str, Any]] = []
        for i in visible_indices(models):
            span = models[i]
            left_pct = (span.start_time_unix_nano - trace_start) / trace_duration * 100
            width_pct = max(span.duration_nanos / trace_duration * 100, 0.1)
            result.append({
                **self.spans[i],
                "indent_style": f"calc({span.level} * 1rem)",
                "has_toggle": span.child_status != ChildStatus.NO_CHILDREN,
                "is_loading": span.child_status == ChildStatus.LOADING_CHILDREN,
                "child_count_label": self._child_count_label(span),
                "has_warning": bool(span.warning),
                "duration_formatted": self._format_duration(span.duration_nanos),
                "colour": span_colours[i],
                "left_pct_str": f"{min(max(left_pct, 0), 100):.2f}%",
                "width_pct_str": f"{min(width_pct, 100):.2f}%",
                "is_selected": span.span_id == self.selected_span_id,
            })
        return result

    @rx.var(cache=True)
    def trace_duration_formatted(self) -> str:
        """Duration of the first root span."""
        if not self.spans:
            return PLACEHOLDER
        return self._format_duration(self._span_models()[0].duration_nanos)

    @rx.var(cache=True)
    def trace_start_formatted(self) -> str:
        if not self.spans:
            return PLACEHOLDER
        return self._format_timestamp(self._span_models()[0].start_time_unix_nano)

    # =========================================================================
    # COMPUTED VARS: Span Details Component
    # =========================================================================

    @rx.var(cache=True)
    def has_selected_span(self) -> bool:
        return bool(self.selected_span_id)

    @rx.var(cache=True)
    def selected_span_rows(self) -> List[Dict[str, str]]:
        """Basic facts about the selected span."""
        models = self._span_models()
        i = index_of(models, self.selected_span_id)
        if i < 0:
            return []
        span = models[i]
        rows = [
            {"key": "Name", "value": span.name},
            {"key": "ID", "value": span.span_id},
            {"key": "Trace ID", "value": span.trace_id},
            {"key": "Service", "value": span.service_name or PLACEHOLDER},
            {"key": "Start Time", "value": self._format_timestamp(span.start_time_unix_nano)},
            {"key": "End Time", "value": self._format_timestamp(span.end_time_unix_nano)},
            {"key": "Duration", "value": self._format_duration(span.duration_nanos)},
        ]
        if span.warning:
            rows.append({"key": "Warning", "value": span.warning})
        return rows

    @rx.var(cache=True)
    def span_attribute_rows(self) -> List[Dict[str, str]]:
        return self._attribute_rows("span_attributes")

    @rx.var(cache=True)
    def resource_attribute_rows(self) -> List[Dict[str, str]]:
        return self._attribute_rows("resource_attributes")

    @rx.var(cache=True)
    def event_rows(self) -> List[Dict[str, str]]:
        if not self.selected_attributes:
            return []
        details = SpanAttributes.model_validate(self.selected_attributes)
        return [
            {
                "key": self._format_timestamp(event.time),
                "value": self._format_value(event.value),
            }
            for event in details.events
        ]

    # =========================================================================
    # EVENT HANDLERS
    # =========================================================================

    async def toggle_span(self, span_id: str):
        """Expand or collapse a span, loading its children the first time."""
        loader = self._loader()
        try:
            if loader.find(span_id).child_status == ChildStatus.REMOTE_CHILDREN:
                if not loader.start_load(span_id):
                    return
                self._publish(loader)
                yield  # show the loading indicator
                await loader.finish_load(span_id)
            else:
                await loader.toggle_load(span_id)
        except Exception as e:
            self.error_message = str(e)
        self._publish(loader)

    def collapse_all_spans(self) -> None:
        """Collapse every expanded span."""
        loader = self._loader()
        loader.collapse_all()
        self._publish(loader)

    def clear_error(self) -> None:
        """Clear the current error message."""
        self.error_message = ""

    def clear_selection(self) -> None:
        """Close the span detail drawer."""
        self.selected_span_id = ""
        self.selected_attributes = {}

    # =========================================================================
    # HELPER METHODS (Private)
    # =========================================================================

    def _span_models(self) -> List[SpanInfo]:
        return [SpanInfo.model_validate(span) for span in self.spans]

    def _loader(self) -> TraceLoader:
        return TraceLoader.from_snapshot(
            api.DatasourceClient(self.current_datasource_uid),
            self.current_trace_id,
            self._span_models(),
            self.current_start_ms,
        )

    def _publish(self, loader: TraceLoader) -> None:
        self.spans = [span.model_dump(mode="json") for span in loader.spans]

    @staticmethod
    async def _load_initial_spans(loader: TraceLoader) -> str:
        """Run the initial load of ``loader``.

        Returns
        -------
        str
            Error message, empty on success. Spans loaded before a failure
            stay in the loader.
        """
        try:
            await loader.load_initial()
        except Exception as e:
            return str(e) or type(e).__name__
        return ""

    @staticmethod
    def _child_count_label(span: SpanInfo) -> str:
        """Badge text for a span's reported child count, empty if none."""
        if not span.child_count:
            return ""
        return str(span.child_count)

    def _attribute_rows(self, field: str) -> List[Dict[str, str]]:
        if not self.selected_attributes:
            return []
        details = SpanAttributes.model_validate(self.selected_attributes)
        values: Dict[str, AnyValue] = getattr(details, field)
        return [
            {
                "key": key,
                "value": self._format_value(value),
                "value_case": value.value_case,
            }
            for key, value in sorted(values.items())
        ]

    @staticmethod
    def _safe_int(val: Any) -> int:
        """Safely convert value to int (handles str, None, etc).

        Parameters
        ----------
        val : Any
            Value to convert.

        Returns
        -------
        int
            Integer value, or 0 if conversion fails.
        """
        if val is None:
            return 0
        try:
            return int(val)
        except (ValueError, TypeError):
            return 0

    @staticmethod
    def _format_duration(nanoseconds: Any) -> str:
        """Format a duration in nanoseconds with the largest fitting unit.

        Parameters
        ----------
        nanoseconds : Any
            Duration in nanoseconds (int, str, or None).

        Returns
        -------
        str
            Formatted duration (e.g., "1.50 ms", "2.00 sec", "42 ns").
        """
        if nanoseconds is None:
            return PLACEHOLDER
        ns = TraceViewerState._safe_int(nanoseconds)
        microseconds = ns / 1000
        milliseconds = microseconds / 1000
        seconds = milliseconds / 1000
        minutes = seconds / 60
        hours = minutes / 60
        days = hours / 24

        if days >= 1:
            return f"{days:.2f} days"
        elif hours >= 1:
            return f"{hours:.2f} hours"
        elif minutes >= 1:
            return f"{minutes:.2f} min"
        elif seconds >= 1:
            return f"{seconds:.2f} sec"
        elif milliseconds >= 1:
            return f"{milliseconds:.2f} ms"
        elif microseconds >= 1:
            return f"{microseconds:.2f} μs"
        return f"{ns} ns"

    @staticmethod
    def _format_timestamp(nanoseconds: Any) -> str:
        """Format a nanosecond epoch timestamp as UTC with milliseconds.

        Returns
        -------
        str
            e.g. "14/11/2023, 22:13:20.123 UTC", or placeholder.
        """
        ns = TraceViewerState._safe_int(nanoseconds)
        if ns <= 0:
            return PLACEHOLDER
        dt = datetime.fromtimestamp(ns // 10**9, tz=timezone.utc)
        millis = (ns // 10**6) % 1000
        return f"{dt.strftime('%d/%m/%Y, %H:%M:%S')}.{millis:03d} UTC"

    @staticmethod
    def _format_value(value: AnyValue) -> str:
        """Render an attribute value according to its populated member."""
        case = value.value_case
        if case == "stringValue":
            return f'"{value.string_value}"'
        if case == "boolValue":
            return "true" if value.bool_value else "false"
        if case in ("intValue", "doubleValue"):
            return str(value.value)
        if case == "bytesValue":
            return f"<bytes {value.bytes_value}>"
        return PLACEHOLDER

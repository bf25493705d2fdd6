"""Span list: the visible rows of the trace tree with a timeline bar each.

All indentation, icons, colours and bar positions are pre-computed in
TraceViewerState.visible_rows; this module only lays them out.
"""

import reflex as rx
from typing import Dict, Any

from ..state import TraceViewerState


def toggle_button(span: rx.Var[Dict[str, Any]]) -> rx.Component:
    """Expand/collapse control, or a spacer for spans without children."""
    return rx.cond(
        span["has_toggle"],
        rx.cond(
            span["is_loading"],
            rx.spinner(size="1"),
            rx.icon_button(
                rx.cond(
                    span["child_status"] == "show_children",
                    rx.icon("chevron-down", size=14),
                    rx.icon("chevron-right", size=14),
                ),
                variant="ghost",
                size="1",
                on_click=TraceViewerState.toggle_span(span["span_id"]).stop_propagation,
                custom_attrs={"data-testid": "span-collapse-expand-button"},
            ),
        ),
        rx.box(width="1.5rem"),
    )


def child_count_badge(span: rx.Var[Dict[str, Any]]) -> rx.Component:
    """Number of direct children, when the span reported any."""
    return rx.cond(
        span["child_count_label"] != "",
        rx.badge(
            span["child_count_label"],
            variant="soft",
            size="1",
            radius="full",
            custom_attrs={"data-testid": "span-child-count"},
        ),
        rx.fragment(),
    )


def span_row(span: rx.Var[Dict[str, Any]]) -> rx.Component:
    """Render a single visible span."""
    return rx.hstack(
        # Name column, indented by level
        rx.hstack(
            toggle_button(span),
            child_count_badge(span),
            rx.text(
                span["name"],
                font_size="0.85rem",
                white_space="nowrap",
                overflow="hidden",
                text_overflow="ellipsis",
            ),
            rx.cond(
                span["has_warning"],
                rx.tooltip(
                    rx.icon("triangle-alert", size=14, color="orange"),
                    content=span["warning"],
                ),
                rx.fragment(),
            ),
            padding_left=span["indent_style"],
            width="33%",
            spacing="1",
            align="center",
        ),
        # Timeline bar
        rx.box(
            rx.tooltip(
                rx.box(
                    position="absolute",
                    left=span["left_pct_str"],
                    width=span["width_pct_str"],
                    min_width="2px",
                    height="60%",
                    top="20%",
                    background=span["colour"],
                    border_radius="2px",
                ),
                content=span["duration_formatted"],
            ),
            position="relative",
            flex="1",
            height="100%",
            border_left="1px solid #E5E7EB",
        ),
        height="2.5rem",
        width="100%",
        align="center",
        cursor="pointer",
        background=rx.cond(span["is_selected"], "#E5E7EB", "transparent"),
        _hover={"background": "#F3F4F6"},
        on_click=TraceViewerState.select_span(span["span_id"]),
        custom_attrs={"data-testid": "span-virtual-item"},
    )


def span_list_header() -> rx.Component:
    """Trace summary with the collapse-all control."""
    return rx.hstack(
        rx.vstack(
            rx.hstack(
                rx.text("Trace:", color="gray"),
                rx.code(TraceViewerState.current_trace_id, font_size="0.85rem"),
                spacing="2",
            ),
            rx.hstack(
                rx.text("Start:", color="gray"),
                rx.text(TraceViewerState.trace_start_formatted),
                rx.text("|", color="gray"),
                rx.text("Duration:", color="gray"),
                rx.text(TraceViewerState.trace_duration_formatted),
                spacing="2",
            ),
            spacing="1",
            align="start",
        ),
        rx.spacer(),
        rx.icon_button(
            rx.icon("chevrons-down-up", size=16),
            variant="soft",
            size="1",
            disabled=~TraceViewerState.can_collapse_all,
            on_click=TraceViewerState.collapse_all_spans,
            title="Collapse all expanded spans",
            custom_attrs={"data-testid": "span-collapse-all-button"},
        ),
        width="100%",
        padding="0.5rem 1rem",
        border_bottom="1px solid #E5E7EB",
        align="center",
    )


def span_list() -> rx.Component:
    """Main span list component."""
    return rx.box(
        span_list_header(),
        rx.cond(
            TraceViewerState.has_spans,
            rx.scroll_area(
                rx.foreach(TraceViewerState.visible_rows, span_row),
                type="auto",
                height="calc(100vh - 160px)",
            ),
            rx.center(
                rx.vstack(
                    rx.icon("inbox", size=48, color="gray"),
                    rx.text("No spans found", color="gray"),
                    spacing="2",
                    align="center",
                ),
                padding="2rem",
            ),
        ),
        width="100%",
    )

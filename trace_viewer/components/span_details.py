"""Detail drawer for the selected span: basic facts, attributes and events."""

import reflex as rx
from typing import Dict

from ..state import TraceViewerState


def key_value_row(row: rx.Var[Dict[str, str]]) -> rx.Component:
    return rx.table.row(
        rx.table.row_header_cell(row["key"], font_weight="medium"),
        rx.table.cell(rx.code(row["value"], variant="ghost")),
    )


def key_value_table(title: str, rows: rx.Var) -> rx.Component:
    """A titled two-column table, omitted when there are no rows."""
    return rx.cond(
        rows.length() > 0,
        rx.vstack(
            rx.text(title, weight="bold", size="2"),
            rx.table.root(
                rx.table.body(rx.foreach(rows, key_value_row)),
                size="1",
                width="100%",
            ),
            spacing="1",
            width="100%",
        ),
        rx.fragment(),
    )


def span_details() -> rx.Component:
    """Side panel shown while a span is selected."""
    return rx.cond(
        TraceViewerState.has_selected_span,
        rx.box(
            rx.hstack(
                rx.heading("Span Details", size="4"),
                rx.spacer(),
                rx.icon_button(
                    rx.icon("x", size=16),
                    variant="ghost",
                    on_click=TraceViewerState.clear_selection,
                ),
                width="100%",
                align="center",
            ),
            rx.vstack(
                key_value_table("Span", TraceViewerState.selected_span_rows),
                rx.cond(
                    TraceViewerState.details_loading,
                    rx.center(rx.spinner(size="2"), padding="1rem"),
                    rx.vstack(
                        key_value_table("Attributes", TraceViewerState.span_attribute_rows),
                        key_value_table("Resource", TraceViewerState.resource_attribute_rows),
                        key_value_table("Events", TraceViewerState.event_rows),
                        spacing="4",
                        width="100%",
                    ),
                ),
                spacing="4",
                width="100%",
                margin_top="1rem",
            ),
            width="40%",
            min_width="320px",
            height="calc(100vh - 80px)",
            overflow_y="auto",
            padding="1rem",
            background="white",
            border_left="1px solid #E5E7EB",
        ),
        rx.fragment(),
    )

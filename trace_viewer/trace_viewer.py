"""Main trace viewer application."""

import reflex as rx

from .state import TraceViewerState
from .components.span_list import span_list
from .components.span_details import span_details


def navbar() -> rx.Component:
    """Navigation bar."""
    return rx.hstack(
        rx.hstack(
            rx.icon("list-tree", size=20),
            rx.text("Trace Viewer", font_weight="bold"),
            spacing="2",
            align="center",
        ),
        rx.spacer(),
        rx.badge(
            rx.cond(TraceViewerState.healthy, "Healthy", "Offline"),
            color_scheme=rx.cond(TraceViewerState.healthy, "green", "red"),
        ),
        padding="1rem",
        border_bottom="1px solid #eee",
        width="100%",
        align="center",
    )


def error_banner() -> rx.Component:
    return rx.cond(
        TraceViewerState.error_message != "",
        rx.callout(
            TraceViewerState.error_message,
            icon="triangle-alert",
            color_scheme="red",
            on_click=TraceViewerState.clear_error,
            margin="1rem",
        ),
        rx.fragment(),
    )


def trace_page() -> rx.Component:
    """Trace page: span list with the detail drawer on the right."""
    return rx.box(
        navbar(),
        error_banner(),
        rx.cond(
            TraceViewerState.loading,
            rx.center(rx.spinner(size="3"), padding="4rem"),
            rx.hstack(
                span_list(),
                span_details(),
                spacing="0",
                align="start",
                width="100%",
            ),
        ),
        on_mount=TraceViewerState.check_health,
        min_height="100vh",
        background="#f5f5f5",
    )


# Health check endpoint for Docker healthcheck
@rx.api("/ping")
def ping():
    """Health check endpoint for container orchestration."""
    return {"status": "ok"}


# App configuration
app = rx.App(
    theme=rx.theme(
        accent_color="teal",
        radius="medium",
    ),
)

app.add_page(
    trace_page,
    route="/trace/[datasource_uid]/[trace_id]",
    title="Trace",
    on_load=TraceViewerState.load_current_trace,
)

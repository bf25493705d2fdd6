"""Reflex configuration for the trace viewer app."""

import os
import reflex as rx
from reflex.config import LogLevel

BACKEND_PORT = int(os.environ.get("TRACE_VIEWER_BACKEND_PORT", 8002))

config = rx.Config(
    app_name="trace_viewer",
    plugins=[
        rx.plugins.TailwindV4Plugin(),
        rx.plugins.SitemapPlugin(),
    ],
    # Grafana itself usually sits on 3000
    frontend_port=int(os.environ.get("TRACE_VIEWER_FRONTEND_PORT", 3001)),
    backend_port=BACKEND_PORT,
    backend_host="0.0.0.0",
    # Where the browser reaches the Reflex backend, not Grafana
    api_url=os.environ.get("REFLEX_API_URL", f"http://localhost:{BACKEND_PORT}"),
    env_file=".env",
    loglevel=LogLevel(os.environ.get("TRACE_VIEWER_LOG_LEVEL", "info").lower()),
    telemetry_enabled=False,
)

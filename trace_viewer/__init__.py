"""Incremental span tree viewer for distributed traces."""

from .loader import TraceLoader
from .models import ChildStatus, SpanAttributes, SpanInfo

__all__ = ["ChildStatus", "SpanAttributes", "SpanInfo", "TraceLoader"]

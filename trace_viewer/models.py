"""Data models for the trace viewer.

Two groups of models live here:

    - Wire models: the JSON returned by the trace search API (traces, span
      sets, raw spans and their typed attribute values). Field aliases match
      the camelCase keys of the API; numeric strings are coerced to ints.
    - View models: ``SpanInfo`` and its ``ChildStatus``, the records the tree
      engine orders, levels and publishes to the renderer, plus the result
      of a span detail lookup.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


# =============================================================================
# WIRE MODELS
# =============================================================================

# Order in which the populated member of an AnyValue is looked up.
VALUE_CASES = ("stringValue", "boolValue", "intValue", "doubleValue", "bytesValue")


class AnyValue(BaseModel):
    """Typed attribute value: exactly one member is populated.

    Integers frequently arrive as numeric strings ("42"); they are coerced
    to ``int`` so no precision is lost for 64-bit values.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    string_value: Optional[str] = Field(None, alias="stringValue")
    bool_value: Optional[bool] = Field(None, alias="boolValue")
    int_value: Optional[int] = Field(None, alias="intValue")
    double_value: Optional[float] = Field(None, alias="doubleValue")
    bytes_value: Optional[Union[str, List[int]]] = Field(None, alias="bytesValue")

    @property
    def value_case(self) -> str:
        """Name of the populated member ("stringValue", ...) or "none"."""
        for case, value in zip(VALUE_CASES, self._members()):
            if value is not None:
                return case
        return "none"

    @property
    def value(self) -> Any:
        """The populated member's value, or None."""
        for value in self._members():
            if value is not None:
                return value
        return None

    def _members(self):
        return (
            self.string_value,
            self.bool_value,
            self.int_value,
            self.double_value,
            self.bytes_value,
        )

    def to_wire(self) -> Dict[str, Any]:
        """Serialize back to the API's camelCase shape."""
        return self.model_dump(by_alias=True, exclude_none=True)


class KeyValue(BaseModel):
    """A single attribute as returned by the search API."""

    key: Optional[str] = None
    value: Optional[AnyValue] = None


class RawSpan(BaseModel):
    """A span node inside a span set, before levelling."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    span_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("spanID", "spanId", "span_id")
    )
    name: Optional[str] = None
    start_time_unix_nano: int = Field(
        0, validation_alias=AliasChoices("startTimeUnixNano", "start_time_unix_nano")
    )
    duration_nanos: int = Field(
        0, validation_alias=AliasChoices("durationNanos", "duration_nanos")
    )
    attributes: List[KeyValue] = Field(default_factory=list)

    @field_validator("start_time_unix_nano", "duration_nanos", mode="before")
    @classmethod
    def default_missing_number(cls, v):
        """Treat null/empty timestamps as zero."""
        if v is None or v == "":
            return 0
        return v

    @field_validator("attributes", mode="before")
    @classmethod
    def default_missing_attributes(cls, v):
        if v is None:
            return []
        return v

    @property
    def end_time_unix_nano(self) -> int:
        return self.start_time_unix_nano + max(self.duration_nanos, 0)

    def attribute(self, key: str) -> Optional[AnyValue]:
        """Return the value of the first attribute named ``key``."""
        for attr in self.attributes:
            if attr.key == key:
                return attr.value
        return None


class SpanSet(BaseModel):
    """Spans of one trace matching a query, plus the total match count."""

    spans: List[RawSpan] = Field(default_factory=list)
    matched: Optional[int] = None

    @field_validator("spans", mode="before")
    @classmethod
    def default_missing_spans(cls, v):
        if v is None:
            return []
        return v


class Trace(BaseModel):
    """A trace entry of a search response.

    The API reports matches either as ``spanSets`` or, in older versions, as
    a single ``spanSet``; ``span_sets_all`` hides the difference.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    trace_id: str = Field(validation_alias=AliasChoices("traceID", "traceId", "trace_id"))
    root_service_name: Optional[str] = Field(None, alias="rootServiceName")
    root_trace_name: Optional[str] = Field(None, alias="rootTraceName")
    start_time_unix_nano: Optional[int] = Field(None, alias="startTimeUnixNano")
    duration_ms: Optional[int] = Field(None, alias="durationMs")
    span_sets: List[SpanSet] = Field(default_factory=list, alias="spanSets")
    span_set: Optional[SpanSet] = Field(None, alias="spanSet")

    @field_validator("span_sets", mode="before")
    @classmethod
    def default_missing_span_sets(cls, v):
        if v is None:
            return []
        return v

    @property
    def span_sets_all(self) -> List[SpanSet]:
        if self.span_sets:
            return self.span_sets
        if self.span_set is not None:
            return [self.span_set]
        return []

    @property
    def spans(self) -> List[RawSpan]:
        """All span nodes across span sets, in response order."""
        return [span for span_set in self.span_sets_all for span in span_set.spans]

    @property
    def matched(self) -> Optional[int]:
        """Total matched span count, if the API reported one."""
        counts = [s.matched for s in self.span_sets_all if s.matched is not None]
        if not counts:
            return None
        return sum(counts)


class SearchResponse(BaseModel):
    """Response of the search endpoint."""

    traces: List[Trace] = Field(default_factory=list)

    @field_validator("traces", mode="before")
    @classmethod
    def default_missing_traces(cls, v):
        if v is None:
            return []
        return v

    def find_trace(self, trace_id: str) -> Optional[Trace]:
        for trace in self.traces:
            if trace.trace_id == trace_id:
                return trace
        return None


class TagScope(BaseModel):
    name: str
    tags: List[str] = Field(default_factory=list)


class SearchTagsResponse(BaseModel):
    """Response of the v2 tag search endpoint."""

    scopes: List[TagScope] = Field(default_factory=list)

    def tags_for(self, scope: str) -> List[str]:
        for item in self.scopes:
            if item.name == scope:
                return item.tags
        return []


class TagNames(BaseModel):
    """Attribute names available for a span, split by scope."""

    span_tags: List[str] = Field(default_factory=list)
    resource_tags: List[str] = Field(default_factory=list)


# =============================================================================
# VIEW MODELS
# =============================================================================

class ChildStatus(str, Enum):
    """Expansion state of a span's children."""

    NO_CHILDREN = "no_children"
    REMOTE_CHILDREN = "remote_children"
    LOADING_CHILDREN = "loading_children"
    SHOW_CHILDREN = "show_children"
    HIDE_CHILDREN = "hide_children"


class SpanInfo(BaseModel):
    """A levelled span record in the ordered list of a trace.

    Attributes
    ----------
    span_id : str
        Identifier, unique within the trace.
    parent_span_id : Optional[str]
        Parent identifier; None for a root.
    level : int
        Depth in the tree, roots are 0.
    child_status : ChildStatus
        Where the span is in the expand/collapse state machine.
    child_count : Optional[int]
        Number of direct children, when known.
    warning : Optional[str]
        Set when the span could not be placed under its parent.
    """

    span_id: str
    parent_span_id: Optional[str] = None
    trace_id: str
    level: int = Field(0, ge=0)
    start_time_unix_nano: int = 0
    end_time_unix_nano: int = 0
    name: str = ""
    service_name: Optional[str] = None
    service_namespace: Optional[str] = None
    child_status: ChildStatus = ChildStatus.NO_CHILDREN
    child_count: Optional[int] = None
    warning: Optional[str] = None

    @model_validator(mode="after")
    def check_duration(self) -> "SpanInfo":
        if self.end_time_unix_nano < self.start_time_unix_nano:
            raise ValueError(
                f"Span {self.span_id} ends before it starts "
                f"({self.end_time_unix_nano} < {self.start_time_unix_nano})"
            )
        return self

    @property
    def duration_nanos(self) -> int:
        return self.end_time_unix_nano - self.start_time_unix_nano

    @property
    def is_root(self) -> bool:
        return self.level == 0


class ChildPresence(BaseModel):
    """Whether a span has children, and how many if the backend said so."""

    known: bool
    count: Optional[int] = None


class SpanEvent(BaseModel):
    """A point-in-time annotation split out of the span attributes."""

    time: int
    value: AnyValue


class SpanAttributes(BaseModel):
    """Attribute detail of a single span."""

    span_attributes: Dict[str, AnyValue] = Field(default_factory=dict)
    resource_attributes: Dict[str, AnyValue] = Field(default_factory=dict)
    events: List[SpanEvent] = Field(default_factory=list)

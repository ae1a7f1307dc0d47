"""
Telemetry record model.

Every record shares a base shape (id, timestamp, session, user, context) and
carries a ``kind`` discriminator so a batch of mixed records parses back into
the right variant:

- ``event``  - usage/analytics events (page views, clicks, conversions, ...)
- ``error``  - captured faults with severity, category and a page snapshot
- ``metric`` - a single performance observation
- ``alert``  - derived from a metric that breached its threshold

Records serialise with camelCase keys (``sessionId``, ``eventType``) since
that is what the sink stores expect.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from functools import partial
from typing import Annotated, Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel


class EventType(StrEnum):
    """Usage event types."""

    PAGE_VIEW = "page_view"
    USER_ACTION = "user_action"
    FORM_SUBMIT = "form_submit"
    BUTTON_CLICK = "button_click"
    LINK_CLICK = "link_click"
    SEARCH = "search"
    CONVERSION = "conversion"
    PERFORMANCE = "performance"
    PERFORMANCE_ALERT = "performance_alert"
    FEATURE_USAGE = "feature_usage"
    ERROR = "error"


class ConversionEvent(StrEnum):
    """Well-known conversion names used by the CRM frontend."""

    WAITLIST_SIGNUP = "waitlist_signup"
    CONTACT_FORM_SUBMIT = "contact_form_submit"
    PRICING_VIEW = "pricing_view"
    DEMO_REQUEST = "demo_request"
    TRIAL_START = "trial_start"
    SUBSCRIPTION_START = "subscription_start"


class ErrorSeverity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(StrEnum):
    SCRIPT_FAULT = "script_fault"
    NETWORK = "network"
    API = "api"
    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    PERFORMANCE = "performance"
    SECURITY = "security"
    USER_INTERACTION = "user_interaction"


class PerformanceCategory(StrEnum):
    """Classification of a metric value against its threshold."""

    EXCELLENT = "excellent"
    GOOD = "good"
    NEEDS_IMPROVEMENT = "needs_improvement"
    POOR = "poor"


def new_record_id(prefix: str) -> str:
    """Opaque, never-reused record identifier."""
    return f"{prefix}_{uuid4().hex}"


def utc_now() -> datetime:
    return datetime.now(UTC)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# Environment snapshots
# =============================================================================


class Geometry(_CamelModel):
    model_config = ConfigDict(frozen=True)

    width: int = 0
    height: int = 0


class NetworkHints(_CamelModel):
    """Network-quality hints (effective connection type, downlink, RTT)."""

    model_config = ConfigDict(frozen=True)

    effective_type: str | None = None
    downlink: float | None = None
    rtt: float | None = None


class RecordContext(_CamelModel):
    """Environment snapshot attached to a record at creation. Immutable."""

    model_config = ConfigDict(frozen=True)

    url: str = ""
    referrer: str = ""
    viewport: Geometry = Field(default_factory=Geometry)
    screen: Geometry = Field(default_factory=Geometry)
    user_agent: str = ""
    language: str = ""
    timezone: str = ""
    color_depth: int | None = None
    pixel_ratio: float | None = None
    connection: NetworkHints | None = None


class MemorySnapshot(_CamelModel):
    used_heap: int
    total_heap: int
    heap_limit: int | None = None


class PerformanceSnapshot(_CamelModel):
    """Page performance at the moment an error was captured (milliseconds)."""

    load_time: float = 0.0
    dom_content_loaded: float = 0.0
    first_paint: float = 0.0
    first_contentful_paint: float = 0.0
    memory: MemorySnapshot | None = None


# =============================================================================
# Records
# =============================================================================


class RecordBase(_CamelModel):
    timestamp: datetime = Field(default_factory=utc_now)
    session_id: str
    user_id: str | None = None
    context: RecordContext = Field(default_factory=RecordContext)

    def to_row(self) -> dict[str, Any]:
        """Serialise for the sink."""
        return self.model_dump(mode="json", by_alias=True)


class EventRecord(RecordBase):
    kind: Literal["event"] = "event"
    id: str = Field(default_factory=partial(new_record_id, "event"))
    event_type: EventType
    data: dict[str, Any] = Field(default_factory=dict)


class ErrorRecord(RecordBase):
    kind: Literal["error"] = "error"
    id: str = Field(default_factory=partial(new_record_id, "error"))
    message: str
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    category: ErrorCategory = ErrorCategory.SCRIPT_FAULT
    stack: str | None = None
    filename: str | None = None
    lineno: int | None = None
    colno: int | None = None
    component_stack: str | None = None
    additional_data: dict[str, Any] = Field(default_factory=dict)
    performance: PerformanceSnapshot | None = None
    is_online: bool = True


class MetricRecord(RecordBase):
    kind: Literal["metric"] = "metric"
    id: str = Field(default_factory=partial(new_record_id, "metric"))
    name: str
    value: float
    metadata: dict[str, Any] = Field(default_factory=dict)


class AlertRecord(RecordBase):
    kind: Literal["alert"] = "alert"
    id: str = Field(default_factory=partial(new_record_id, "alert"))
    metric_name: str
    value: float
    threshold: float
    category: PerformanceCategory
    severity: ErrorSeverity

    @field_validator("severity")
    @classmethod
    def _alert_severity(cls, value: ErrorSeverity) -> ErrorSeverity:
        if value not in (ErrorSeverity.MEDIUM, ErrorSeverity.HIGH):
            raise ValueError("alert severity must be medium or high")
        return value


AnyRecord = Annotated[
    EventRecord | ErrorRecord | MetricRecord | AlertRecord,
    Field(discriminator="kind"),
]

_record_adapter: TypeAdapter[Any] = TypeAdapter(AnyRecord)


def parse_record(row: dict[str, Any]) -> EventRecord | ErrorRecord | MetricRecord | AlertRecord:
    """Parse a stored row back into its record variant using ``kind``."""
    record: EventRecord | ErrorRecord | MetricRecord | AlertRecord = (
        _record_adapter.validate_python(row)
    )
    return record

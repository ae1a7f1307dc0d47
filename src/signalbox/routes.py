"""
FastAPI routes for telemetry.

Read-only dashboard endpoints over a running ``TelemetryRuntime`` plus two
beacon endpoints so a page without the client library can still post
events and errors.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from signalbox.records import ErrorCategory, ErrorSeverity, EventType
from signalbox.runtime import TelemetryRuntime


class BeaconEventRequest(BaseModel):
    event_type: EventType
    data: dict[str, Any] = Field(default_factory=dict)


class BeaconErrorRequest(BaseModel):
    message: str = Field(min_length=1)
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    category: ErrorCategory = ErrorCategory.SCRIPT_FAULT
    stack: str | None = None
    filename: str | None = None
    lineno: int | None = None
    colno: int | None = None
    additional_data: dict[str, Any] = Field(default_factory=dict)


class BeaconResponse(BaseModel):
    id: str


def create_telemetry_routes(runtime: TelemetryRuntime) -> APIRouter:
    """
    Create FastAPI routes for telemetry dashboards and beacons.

    Args:
        runtime: TelemetryRuntime whose collectors back the endpoints

    Returns:
        FastAPI APIRouter
    """
    router = APIRouter(prefix="/_telemetry", tags=["Telemetry"])

    @router.get("/performance/summary")
    async def performance_summary() -> dict[str, Any]:
        return runtime.performance.get_performance_summary()

    @router.get("/performance/dashboard")
    async def performance_dashboard() -> dict[str, Any]:
        return runtime.performance.get_dashboard_data()

    @router.get("/errors/stats")
    async def error_statistics() -> dict[str, Any]:
        stats = await runtime.errors.get_error_statistics()
        if stats is None:
            raise HTTPException(status_code=503, detail="Error store unavailable")
        return stats

    @router.get("/usage/dashboard")
    async def usage_dashboard() -> dict[str, Any]:
        data = await runtime.usage.get_dashboard_data()
        if data is None:
            raise HTTPException(status_code=503, detail="Usage store unavailable")
        return data

    @router.post("/beacon/event", response_model=BeaconResponse, status_code=202)
    async def beacon_event(body: BeaconEventRequest) -> BeaconResponse:
        """Queue a usage event. Delivery happens on the collector's schedule."""
        event_id = runtime.usage.track_event(body.event_type, body.data)
        if event_id is None:
            raise HTTPException(status_code=422, detail="Event could not be recorded")
        return BeaconResponse(id=event_id)

    @router.post("/beacon/error", response_model=BeaconResponse, status_code=202)
    async def beacon_error(body: BeaconErrorRequest) -> BeaconResponse:
        error_id = runtime.errors.track_error(
            body.message,
            severity=body.severity,
            category=body.category,
            stack=body.stack,
            filename=body.filename,
            lineno=body.lineno,
            colno=body.colno,
            additional_data=body.additional_data,
        )
        if error_id is None:
            raise HTTPException(status_code=422, detail="Error could not be recorded")
        return BeaconResponse(id=error_id)

    return router

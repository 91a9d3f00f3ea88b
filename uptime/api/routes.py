"""API routes for endpoints, uptime series, incidents and the sweep scheduler.

Endpoints:
  GET    /api/endpoints                     all endpoints with their hourly series
  POST   /api/endpoints                     register an endpoint
  GET    /api/endpoints/{alias}             hourly + daily series and incidents
  DELETE /api/endpoints/{alias}             remove an endpoint and its samples
  GET    /api/endpoints/{alias}/uptime      one series (?window=hourly|daily)
  GET    /api/endpoints/{alias}/incidents   every non-200 sample
  GET    /api/scheduler/status              sweep counters + last sweep
  POST   /api/scheduler/sweep               run one sweep now
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request

from uptime.api.schemas import (
    BucketPointOut,
    EndpointCreate,
    EndpointDetail,
    EndpointOut,
    EndpointSummary,
    IncidentOut,
    UptimeSeries,
)
from uptime.health.models import MonitoredEndpoint

logger = logging.getLogger(__name__)

router = APIRouter()


def _require_endpoint(request: Request, alias: str) -> MonitoredEndpoint:
    endpoint = request.app.state.registry.get(alias)
    if not endpoint:
        raise HTTPException(status_code=404, detail=f"Endpoint not found: {alias}")
    return endpoint


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.get("/endpoints")
def list_endpoints(request: Request) -> dict[str, Any]:
    """All registered endpoints, each with its last-24h hourly series."""
    registry = request.app.state.registry
    aggregator = request.app.state.aggregator

    summaries = []
    for ep in registry.list_endpoints():
        hourly = aggregator.hourly(ep.alias)
        summaries.append(EndpointSummary(
            url=ep.url,
            alias=ep.alias,
            hourly=[BucketPointOut.from_point(p) for p in hourly],
        ).model_dump())
    return {"endpoints": summaries}


@router.post("/endpoints", status_code=201, response_model=EndpointOut)
def create_endpoint(body: EndpointCreate, request: Request) -> EndpointOut:
    registry = request.app.state.registry
    try:
        endpoint = registry.add(body.url, body.alias)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return EndpointOut(url=endpoint.url, alias=endpoint.alias)


@router.get("/endpoints/{alias}", response_model=EndpointDetail)
def get_endpoint(alias: str, request: Request) -> EndpointDetail:
    endpoint = _require_endpoint(request, alias)
    aggregator = request.app.state.aggregator
    extractor = request.app.state.incidents

    return EndpointDetail(
        url=endpoint.url,
        alias=endpoint.alias,
        hourly=[BucketPointOut.from_point(p) for p in aggregator.hourly(alias)],
        daily=[BucketPointOut.from_point(p) for p in aggregator.daily(alias)],
        incidents=[IncidentOut.from_incident(i) for i in extractor.incidents(alias)],
    )


@router.delete("/endpoints/{alias}")
def delete_endpoint(alias: str, request: Request) -> dict[str, str]:
    if not request.app.state.registry.remove(alias):
        raise HTTPException(status_code=404, detail=f"Endpoint not found: {alias}")
    return {"deleted": alias}


@router.get("/endpoints/{alias}/uptime", response_model=UptimeSeries)
def get_uptime(alias: str, request: Request, window: str = "hourly") -> UptimeSeries:
    _require_endpoint(request, alias)
    aggregator = request.app.state.aggregator
    try:
        w = aggregator.window(window)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    series = aggregator.series(alias, w)
    return UptimeSeries(
        alias=alias,
        window=w.name,
        bucket_seconds=w.bucket_seconds,
        series=[BucketPointOut.from_point(p) for p in series],
    )


@router.get("/endpoints/{alias}/incidents")
def get_incidents(alias: str, request: Request) -> dict[str, Any]:
    _require_endpoint(request, alias)
    incidents = request.app.state.incidents.incidents(alias)
    return {
        "alias": alias,
        "incidents": [IncidentOut.from_incident(i).model_dump() for i in incidents],
    }


# ── Scheduler ────────────────────────────────────────────────────────────────


@router.get("/scheduler/status")
def scheduler_status(request: Request) -> dict[str, Any]:
    return request.app.state.scheduler.state.to_dict()


@router.post("/scheduler/sweep")
async def trigger_sweep(request: Request) -> dict[str, Any]:
    """Run one sweep immediately (waits for a sweep already in progress)."""
    report = await request.app.state.scheduler.run_sweep()
    return report.to_dict()

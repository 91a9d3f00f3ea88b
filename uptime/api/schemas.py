"""Pydantic models for API requests and responses."""

from __future__ import annotations

from pydantic import BaseModel, Field, HttpUrl, TypeAdapter, ValidationError, field_validator

from uptime.health.models import BucketPoint, Incident


_http_url = TypeAdapter(HttpUrl)


class EndpointCreate(BaseModel):
    url: str
    alias: str = Field(min_length=1, max_length=100, pattern=r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

    @field_validator("url")
    @classmethod
    def check_url(cls, v: str) -> str:
        """Must parse as an http(s) URL; the caller's spelling is kept as-is."""
        v = v.strip()
        try:
            _http_url.validate_python(v)
        except ValidationError as e:
            raise ValueError(e.errors()[0]["msg"]) from e
        return v


class EndpointOut(BaseModel):
    url: str
    alias: str


class BucketPointOut(BaseModel):
    time: str
    uptime_pct: int | None

    @classmethod
    def from_point(cls, p: BucketPoint) -> "BucketPointOut":
        return cls(time=p.time.isoformat(), uptime_pct=p.uptime_pct)


class IncidentOut(BaseModel):
    time: str
    status_code: int

    @classmethod
    def from_incident(cls, i: Incident) -> "IncidentOut":
        return cls(time=i.time.isoformat(), status_code=i.status_code)


class EndpointSummary(EndpointOut):
    hourly: list[BucketPointOut]


class EndpointDetail(EndpointOut):
    hourly: list[BucketPointOut]
    daily: list[BucketPointOut]
    incidents: list[IncidentOut]


class UptimeSeries(BaseModel):
    alias: str
    window: str
    bucket_seconds: int
    series: list[BucketPointOut]

"""Pydantic schemas for the monitoring and admin endpoints.

Wire names are camelCase to match the browser client.
"""

from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class RateLimitEntryView(_CamelModel):
    key: str
    count: int
    reset_time: int = Field(..., alias="resetTime")


class RateLimitingView(_CamelModel):
    active_entries: int = Field(..., alias="activeEntries")
    entries: List[RateLimitEntryView] = Field(default_factory=list)


class OperationStats(_CamelModel):
    count: int
    avg_ms: float = Field(..., alias="avgMs")
    min_ms: float = Field(..., alias="minMs")
    max_ms: float = Field(..., alias="maxMs")
    p95_ms: float = Field(..., alias="p95Ms")
    p99_ms: float = Field(..., alias="p99Ms")


class MonitoringResponse(_CamelModel):
    rate_limiting: RateLimitingView = Field(..., alias="rateLimiting")
    performance: Dict[str, OperationStats | None] = Field(default_factory=dict)
    timestamp: str


class RateLimitResetRequest(_CamelModel):
    identifier: str = Field(..., min_length=1)
    route_path: str = Field(..., min_length=1, alias="routePath")


class RateLimitResetResponse(_CamelModel):
    removed: int

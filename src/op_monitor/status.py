"""Pydantic models describing monitor status for callers and the CLI."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from op_monitor.models import MonitorState


class ProviderUsage(BaseModel):
    """Success/failure counters for one provider."""

    name: str = Field(..., description="Provider name")
    local: bool = Field(default=False, description="Whether the provider runs locally")
    success: int = Field(default=0, description="Successful queries")
    failure: int = Field(default=0, description="Failed queries")


class MonitorStatus(BaseModel):
    """Point-in-time view of an activity monitor."""

    is_active: bool = Field(..., description="True while the monitor is in the active state")
    state: MonitorState = Field(..., description="Lifecycle state")
    total_events: int = Field(default=0, description="Events currently held in the store")
    active_sources: int = Field(default=0, description="Sources with a context entry")
    learning_data_points: int = Field(default=0, description="Stored learning snapshots")
    last_event_at: datetime | None = Field(default=None, description="Newest event timestamp")
    config: dict[str, Any] = Field(default_factory=dict, description="Effective configuration")
    available_models: dict[str, str] = Field(
        default_factory=dict, description="Query purpose to model mapping"
    )
    providers: list[ProviderUsage] = Field(default_factory=list)

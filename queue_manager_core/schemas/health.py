"""Pydantic schema for the health endpoint."""

from __future__ import annotations

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Liveness status plus in-memory state diagnostics."""

    status: str = Field("ok", description="Always 'ok' when the process is serving.")
    connection_limiter_keys: int = Field(0, description="Keys tracked by the connection limiter.")
    invite_limiter_keys: int = Field(0, description="Keys tracked by the invite limiter.")
    env_files_tracked: int = Field(0, description="Session credential files currently tracked.")

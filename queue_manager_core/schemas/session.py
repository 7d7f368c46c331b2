"""Pydantic schemas for session endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field


class SessionCreatedResponse(BaseModel):
    """Response returned when a client is admitted."""

    session_id: str = Field(..., description="Unique session identifier (UUID4).")
    token: str = Field(
        ...,
        description="Signed session token; send it back in the X-Session-Token header.",
    )
    issued_at_ms: int = Field(..., description="Token issue time in UNIX milliseconds.")
    expires_in_ms: int = Field(..., description="Maximum token age accepted by the server.")


class SessionInfoResponse(BaseModel):
    """Session resolved from a valid token."""

    session_id: str = Field(..., description="Session identifier carried by the token.")
    issued_at_ms: int = Field(..., description="Token issue time in UNIX milliseconds.")
    age_ms: int = Field(..., description="Token age at resolution time.")

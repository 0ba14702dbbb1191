"""Data contracts for RTC token endpoints."""
from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, Field


class ParticipantRole(str, enum.Enum):
    HOST = "host"
    LISTENER = "listener"


class TokenRequest(BaseModel):
    """Token request after alias resolution."""

    room_name: str = Field(..., min_length=1, description="Room name to join")
    participant_name: str = Field(..., min_length=1, description="Participant identity")
    participant_identity: str | None = Field(default=None, description="Explicit identity override")
    participant_metadata: str | None = Field(default=None, description="Opaque participant metadata, usually JSON")
    participant_attributes: dict[str, Any] | None = Field(default=None, description="Participant attributes, forwarded as-is")
    room_config: dict[str, Any] | None = Field(default=None, description="JSON form of a LiveKit RoomConfiguration")


class RtcTokenResponse(BaseModel):
    token: str = Field(..., description="JWT token for the LiveKit server")
    participant_token: str = Field(..., description="Same JWT, for clients expecting this field name")
    server_url: str = Field(..., description="LiveKit server URL")


class RtcErrorResponse(BaseModel):
    error: str
    message: str | None = None

"""LiveKit token issuance.

Requests arrive loosely typed, with several historical spellings for the same
fields. They are normalized into a single ``TokenRequest``, a grant is derived
from the participant role found in the metadata, and the signed JWT is produced
by ``livekit.api.AccessToken``."""
from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Any
from uuid import uuid4

from google.protobuf import json_format
from livekit import api

from ..core.config import settings
from ..schemas.rtc import ParticipantRole, TokenRequest

logger = logging.getLogger(__name__)

CONFIGURATION_ERROR_MESSAGE = (
    "Server configuration error. Please set LIVEKIT_API_KEY, LIVEKIT_API_SECRET, and LIVEKIT_URL."
)
ISSUE_ERROR_MESSAGE = "Generating token failed"

# Precedence order: first present value wins.
ROOM_FIELDS = ("room", "roomName", "room_name")
IDENTITY_FIELDS = ("identity", "participantName", "participant_name")
METADATA_FIELDS = ("metadata", "participant_metadata")
ATTRIBUTES_FIELDS = ("attributes", "participant_attributes")
ROOM_CONFIG_FIELDS = ("room_config", "roomConfig")
IDENTITY_OVERRIDE_FIELDS = ("participant_identity", "participantIdentity")


class TokenServiceError(Exception):
    """Base error for token issuance."""


class TokenConfigurationError(TokenServiceError):
    """Raised when LiveKit credentials or URL are not configured."""

    def __init__(self, message: str = CONFIGURATION_ERROR_MESSAGE) -> None:
        super().__init__(message)


class TokenIssueError(TokenServiceError):
    """Raised when a request could not be turned into a signed token."""


@dataclass(slots=True)
class RtcTokenResult:
    token: str
    server_url: str
    room: str
    identity: str
    role: ParticipantRole
    expires_in: int


def _first_present(payload: Mapping[str, Any], fields: tuple[str, ...]) -> Any:
    for field in fields:
        value = payload.get(field)
        if value is None or value == "":
            continue
        return value
    return None


def normalize_request(payload: Mapping[str, Any] | None) -> TokenRequest:
    """Resolve field aliases into a ``TokenRequest``, generating room and identity if absent."""

    payload = payload or {}

    room = _first_present(payload, ROOM_FIELDS)
    identity = _first_present(payload, IDENTITY_FIELDS)
    metadata = _first_present(payload, METADATA_FIELDS)
    override = _first_present(payload, IDENTITY_OVERRIDE_FIELDS)

    if not metadata:
        metadata = None
    elif not isinstance(metadata, str):
        metadata = json.dumps(metadata)

    return TokenRequest(
        room_name=str(room) if room is not None else f"room-{uuid4()}",
        participant_name=str(identity) if identity is not None else f"user-{uuid4()}",
        participant_identity=str(override) if override is not None else None,
        participant_metadata=metadata,
        participant_attributes=_first_present(payload, ATTRIBUTES_FIELDS),
        room_config=_first_present(payload, ROOM_CONFIG_FIELDS),
    )


def parse_role(metadata: str | None) -> ParticipantRole | None:
    """Read ``role`` from JSON metadata. Never raises; unknown or malformed input yields ``None``."""

    if not metadata:
        return None
    try:
        data = json.loads(metadata)
    except (TypeError, ValueError, RecursionError):
        return None
    if not isinstance(data, dict):
        return None

    role = data.get("role")
    try:
        return ParticipantRole(role)
    except ValueError:
        return None


def build_grants(room: str, role: ParticipantRole | None, *, role_based: bool = True) -> api.VideoGrants:
    """Derive the capability grant for a participant.

    With ``role_based`` every participant may join, subscribe, publish data and
    update its own metadata, and only hosts may publish media. Without it the
    grant is limited to joining and updating own metadata.
    """

    if not role_based:
        return api.VideoGrants(
            room_join=True,
            room=room,
            can_subscribe=False,
            can_publish=False,
            can_publish_data=False,
            can_update_own_metadata=True,
        )

    return api.VideoGrants(
        room_join=True,
        room=room,
        can_subscribe=True,
        can_publish=role is ParticipantRole.HOST,
        can_publish_data=True,
        can_update_own_metadata=True,
    )


def create_token(
    request: TokenRequest,
    api_key: str,
    api_secret: str,
    *,
    role: ParticipantRole | None = None,
    ttl: timedelta = timedelta(minutes=10),
    role_based: bool = True,
) -> str:
    """Sign a LiveKit access token for the normalized request."""

    access = (
        api.AccessToken(api_key, api_secret)
        .with_identity(request.participant_name)
        .with_name(request.participant_name)
        .with_ttl(ttl)
        .with_grants(build_grants(request.room_name, role, role_based=role_based))
    )

    if request.participant_identity:
        access = access.with_identity(request.participant_identity)
    if request.participant_metadata:
        access = access.with_metadata(request.participant_metadata)
    if request.participant_attributes:
        access = access.with_attributes(request.participant_attributes)
    if request.room_config:
        room_config = json_format.ParseDict(request.room_config, api.RoomConfiguration())
        access = access.with_room_config(room_config)

    return access.to_jwt()


async def issue_token(payload: Mapping[str, Any] | None) -> RtcTokenResult:
    """Produce a LiveKit access token and the server URL to connect to."""

    if not settings.livekit_configured:
        raise TokenConfigurationError()

    try:
        request = normalize_request(payload)
        role = parse_role(request.participant_metadata)
        token = create_token(
            request,
            settings.livekit_api_key,
            settings.livekit_api_secret,
            role=role,
            ttl=timedelta(seconds=settings.token_ttl_seconds),
            role_based=settings.token_role_based_grants,
        )
    except Exception as exc:  # noqa: BLE001 - every failure maps to a single error response
        raise TokenIssueError(str(exc)) from exc

    identity = request.participant_identity or request.participant_name
    logger.info("Token created for room: %s, participant: %s", request.room_name, identity)

    return RtcTokenResult(
        token=token,
        server_url=settings.livekit_url,
        room=request.room_name,
        identity=identity,
        role=role or ParticipantRole.LISTENER,
        expires_in=settings.token_ttl_seconds,
    )

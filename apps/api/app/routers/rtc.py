"""RTC token issuance endpoints."""
from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Request

from ..schemas.rtc import RtcErrorResponse, RtcTokenResponse
from ..services import rtc as rtc_service

router = APIRouter()

ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {500: {"model": RtcErrorResponse}}


async def _read_json_object(request: Request) -> dict[str, Any]:
    body = await request.body()
    if not body.strip():
        return {}
    try:
        payload = json.loads(body)
    except (ValueError, RecursionError) as exc:
        raise rtc_service.TokenIssueError(f"Request body is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise rtc_service.TokenIssueError("Request body must be a JSON object")
    return payload


def _to_response(result: rtc_service.RtcTokenResult) -> RtcTokenResponse:
    return RtcTokenResponse(token=result.token, participant_token=result.token, server_url=result.server_url)


@router.post("/token", response_model=RtcTokenResponse, responses=ERROR_RESPONSES)
async def create_rtc_token(request: Request) -> RtcTokenResponse:
    """Return a LiveKit access token for the room and participant in the JSON body."""

    if not rtc_service.settings.livekit_configured:
        raise rtc_service.TokenConfigurationError()

    payload = await _read_json_object(request)
    result = await rtc_service.issue_token(payload)
    return _to_response(result)


@router.get("/token", response_model=RtcTokenResponse, responses=ERROR_RESPONSES)
async def get_rtc_token(request: Request) -> RtcTokenResponse:
    """Same as the POST variant, reading fields from the query string."""

    result = await rtc_service.issue_token(dict(request.query_params))
    return _to_response(result)

"""FastAPI application issuing LiveKit room access tokens."""
from __future__ import annotations

import base64
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from .core.config import settings
from .routers import rtc as rtc_router
from .schemas.rtc import RtcErrorResponse
from .services.rtc import ISSUE_ERROR_MESSAGE, TokenConfigurationError, TokenIssueError

logger = logging.getLogger(__name__)

app = FastAPI(title="Room Token API", version="0.1.0")

if settings.cors_allow_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(rtc_router.router, prefix="/api/rtc", tags=["rtc"])
# Path used by clients of the original token function.
app.include_router(rtc_router.router, prefix="/api", tags=["rtc"], include_in_schema=False)


@app.exception_handler(TokenConfigurationError)
async def token_configuration_error_handler(request: Request, exc: TokenConfigurationError) -> JSONResponse:
    logger.error("Missing required environment variables for %s", request.url.path)
    body = RtcErrorResponse(error=str(exc))
    return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))


@app.exception_handler(TokenIssueError)
async def token_issue_error_handler(request: Request, exc: TokenIssueError) -> JSONResponse:
    logger.error("Error generating token: %s", exc, exc_info=exc)
    body = RtcErrorResponse(error=ISSUE_ERROR_MESSAGE, message=str(exc))
    return JSONResponse(status_code=500, content=body.model_dump())


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s: %s", request.url.path, exc)
    body = RtcErrorResponse(error=ISSUE_ERROR_MESSAGE, message=str(exc))
    return JSONResponse(status_code=500, content=body.model_dump())


FAVICON_BYTES = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR4nGMAAQAABQABDQottAAAAABJRU5ErkJggg=="
)


@app.get("/api/health", tags=["meta"])
async def health() -> dict[str, str | bool]:
    """Liveness probe that also reports whether LiveKit settings are present."""

    return {"status": "ok", "configured": settings.livekit_configured}


@app.head("/api/health", tags=["meta"])
async def health_head() -> Response:
    """Allow HEAD for uptime monitors that only need the status code."""

    return Response(status_code=200)


@app.get("/robots.txt", response_class=PlainTextResponse, include_in_schema=False)
async def robots() -> PlainTextResponse:
    return PlainTextResponse("User-agent: *\nDisallow:")


@app.get("/favicon.ico", include_in_schema=False)
async def favicon() -> Response:
    return Response(content=FAVICON_BYTES, media_type="image/png")

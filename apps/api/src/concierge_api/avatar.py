"""Streaming avatar session tokens.

The browser widget renders the avatar with a short-lived HeyGen token. The
API key never leaves the server; this route exchanges it for a token.
"""

import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request, status

from concierge_api.config import Settings, get_settings
from concierge_api.schemas import CamelModel

logger = logging.getLogger("concierge-avatar")

router = APIRouter(prefix="/avatar", tags=["Avatar"])

HEYGEN_TOKEN_URL = "https://api.heygen.com/v1/streaming.create_token"
HEYGEN_TIMEOUT_SECONDS = 10.0


class AvatarTokenResponse(CamelModel):
    token: str


def get_http_transport(request: Request) -> httpx.AsyncBaseTransport | None:
    return getattr(request.app.state, "http_transport", None)


async def create_streaming_token(
    api_key: str, transport: httpx.AsyncBaseTransport | None = None
) -> str:
    """Exchange the HeyGen API key for a streaming session token.

    Raises:
        httpx.HTTPStatusError: Upstream returned a non-2xx status.
        httpx.HTTPError: Network failure or timeout.
        KeyError: Upstream response did not contain a token.
    """
    async with httpx.AsyncClient(
        timeout=HEYGEN_TIMEOUT_SECONDS, transport=transport
    ) as client:
        response = await client.post(HEYGEN_TOKEN_URL, headers={"x-api-key": api_key})
        response.raise_for_status()
        return response.json()["data"]["token"]


@router.post("/token", response_model=AvatarTokenResponse)
async def avatar_token(
    settings: Settings = Depends(get_settings),
    transport: httpx.AsyncBaseTransport | None = Depends(get_http_transport),
):
    """Create a short-lived avatar streaming token."""
    if not settings.heygen_api_key:
        logger.error("HEYGEN_API_KEY not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Avatar service not configured",
        )

    try:
        token = await create_streaming_token(settings.heygen_api_key, transport)
    except httpx.HTTPStatusError as e:
        logger.error(f"HeyGen token request failed: {e.response.status_code}")
        raise HTTPException(
            status_code=e.response.status_code,
            detail="Failed to create avatar token",
        ) from e
    except (httpx.HTTPError, KeyError, TypeError, ValueError) as e:
        logger.error(f"HeyGen token request failed: {e!r}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create avatar token",
        ) from e

    return AvatarTokenResponse(token=token)

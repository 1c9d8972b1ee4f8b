"""Two-legged OAuth token acquisition for Autodesk Platform Services."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from .client import raise_for_response
from .errors import TandemApiError

LOG = logging.getLogger(__name__)

TOKEN_URL = "https://developer.api.autodesk.com/authentication/v2/token"
DEFAULT_SCOPE = "data:read"


def create_token(
    client_id: str,
    client_secret: str,
    scope: str = DEFAULT_SCOPE,
    *,
    token_url: str = TOKEN_URL,
    timeout: float = 30.0,
    transport: Optional[httpx.BaseTransport] = None,
) -> str:
    """Request a client-credentials access token and return it."""
    if not client_id or not client_secret:
        raise ValueError("client_id and client_secret are required to request a token")
    with httpx.Client(timeout=httpx.Timeout(timeout), transport=transport) as http:
        try:
            response = http.post(
                token_url,
                auth=(client_id, client_secret),
                data={"grant_type": "client_credentials", "scope": scope},
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as exc:
            raise TandemApiError(f"Token request failed: {exc}", url=token_url) from exc
    raise_for_response(response)
    token = response.json().get("access_token")
    if not token:
        raise TandemApiError("Token response did not contain access_token", url=token_url)
    LOG.debug("Obtained access token for scope '%s'", scope)
    return token


__all__ = ["DEFAULT_SCOPE", "TOKEN_URL", "create_token"]

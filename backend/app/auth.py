"""
Access-key authentication for the external API.

There is exactly one accepted key (INTERNAL_API_KEY). Callers present it
either as ``X-API-KEY: <key>`` or ``Authorization: Bearer <key>``.
"""

import hmac
import logging
from typing import Optional

from fastapi import Depends, Header

from app.config import GatewaySettings, get_settings
from app.errors import Misconfigured, Unauthorized

logger = logging.getLogger(__name__)

_BEARER_PREFIX = "Bearer "


def extract_api_key(
    x_api_key: Optional[str] = None,
    authorization: Optional[str] = None,
) -> Optional[str]:
    """
    Pick the caller's key from the two supported headers.

    X-API-KEY wins when both are present. Only a leading "Bearer " is
    stripped from the Authorization value; "Bearer " appearing later in the
    value is part of the key, and a value without the prefix is used as is.
    """
    if x_api_key:
        return x_api_key
    if not authorization:
        return None
    if authorization.startswith(_BEARER_PREFIX):
        return authorization[len(_BEARER_PREFIX):]
    return authorization


def check_api_key(supplied: Optional[str], expected: Optional[str]) -> None:
    """
    Compare the supplied key against the configured one.

    Raises:
        Misconfigured: no key is configured on the server.
        Unauthorized: key missing or not an exact match.
    """
    if not expected:
        logger.warning(
            "INTERNAL_API_KEY is not configured; all external API requests will be rejected"
        )
        raise Misconfigured("API key not configured")

    if not supplied or not hmac.compare_digest(
        supplied.encode("utf-8"), expected.encode("utf-8")
    ):
        raise Unauthorized()


async def verify_api_key(
    x_api_key: Optional[str] = Header(None),
    authorization: Optional[str] = Header(None),
    settings: GatewaySettings = Depends(get_settings),
) -> None:
    """FastAPI dependency guarding every /external route."""
    check_api_key(extract_api_key(x_api_key, authorization), settings.internal_api_key)

"""
Gateway configuration.

Process configuration comes from environment variables (loaded from .env by
app.db via python-dotenv):

  INTERNAL_API_KEY      The single access key accepted by /external routes.
  SYSTEM_SENDER_EMAIL   Address every outbound email is sent from.
  SYSTEM_SENDER_NAME    Default display name for the sender.

The per-domain Resend tokens live in the database (``setting`` table,
``resend_tokens`` column) so operators can rotate them without a redeploy.

Both are read per request and handed to the services as plain values; the
services never reach for os.environ themselves.
"""

import json
import logging
import os
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict

from app.errors import Misconfigured

logger = logging.getLogger(__name__)

DEFAULT_SENDER_NAME = "System"

_SETTING_TABLE = "setting"


class GatewaySettings(BaseModel):
    """Immutable snapshot of the environment-backed settings."""

    model_config = ConfigDict(frozen=True)

    internal_api_key: Optional[str] = None
    sender_email: Optional[str] = None
    sender_name: Optional[str] = None


def _env(name: str) -> Optional[str]:
    value = os.getenv(name, "").strip()
    return value or None


def get_settings() -> GatewaySettings:
    """FastAPI dependency: read the environment into a GatewaySettings."""
    return GatewaySettings(
        internal_api_key=_env("INTERNAL_API_KEY"),
        sender_email=_env("SYSTEM_SENDER_EMAIL"),
        sender_name=_env("SYSTEM_SENDER_NAME"),
    )


def _parse_token_map(raw) -> Dict[str, str]:
    """
    Normalise the stored resend_tokens value into a domain -> token dict.

    The column may hold a JSON object or a JSON-encoded string. Anything
    else (including blank values) yields an empty map.
    """
    if raw is None or raw == "":
        return {}
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning("setting.resend_tokens is not valid JSON; ignoring it")
            return {}
    if not isinstance(raw, dict):
        logger.warning("setting.resend_tokens is not an object; ignoring it")
        return {}
    return {str(domain): str(token) for domain, token in raw.items() if token}


def load_resend_tokens(db) -> Dict[str, str]:
    """
    Fetch the domain -> Resend token map from the settings row.

    Raises:
        Misconfigured: database client unavailable or the read failed.
    """
    if db is None:
        raise Misconfigured("Database client unavailable: SUPABASE_SERVICE_KEY is not configured")

    try:
        result = db.table(_SETTING_TABLE).select("resend_tokens").limit(1).execute()
    except Exception as e:
        logger.error(f"Failed to load Resend tokens: {e}")
        raise Misconfigured("Failed to load Resend tokens")

    if not result.data:
        return {}
    return _parse_token_map(result.data[0].get("resend_tokens"))

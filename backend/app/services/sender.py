"""
Outbound email service.

Validates a send request, resolves the Resend token for the system sender's
domain and submits exactly one send to Resend.

Token resolution
----------------
Resend tokens are scoped per verified domain, so the token is chosen by the
domain of SYSTEM_SENDER_EMAIL (never by anything the caller supplies):

  SYSTEM_SENDER_EMAIL = noreply@mail.example.com
  setting.resend_tokens = {"mail.example.com": "re_xxx", ...}
  -> token "re_xxx"

A missing entry is a configuration problem on our side (Misconfigured), not
a caller error, and no send is attempted.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

import resend

from app.config import DEFAULT_SENDER_NAME, GatewaySettings, load_resend_tokens
from app.errors import InvalidInput, Misconfigured, ProviderError
from app.models.email import SendEmailRequest, SendResult
from app.services.email_utils import get_domain, is_valid_email

logger = logging.getLogger(__name__)


class ResendProvider:
    """
    Thin wrapper around the Resend SDK.

    The SDK keeps its API key at module level, so the key is assigned and
    used inside one synchronous call with nothing awaited in between.
    """

    def send(self, token: str, payload: dict) -> dict:
        resend.api_key = token
        return resend.Emails.send(payload)


def _validate(request: SendEmailRequest) -> None:
    """Check the caller-supplied fields, first failure wins."""
    if not request.to:
        raise InvalidInput("Recipients are required")

    if not request.subject:
        raise InvalidInput("Subject is required")

    if not request.text and not request.html:
        raise InvalidInput("Email content is required")

    for address in request.to:
        if not is_valid_email(address):
            raise InvalidInput(f"Invalid email address: {address}")


def resolve_token(sender_email: str, resend_tokens: Dict[str, str]) -> str:
    """
    Return the Resend token for the sender's domain.

    Raises:
        Misconfigured: sender address has no domain or no token is mapped.
    """
    try:
        domain = get_domain(sender_email)
    except ValueError:
        raise Misconfigured("Sender email not configured correctly")

    token = resend_tokens.get(domain)
    if not token:
        logger.warning(f"No Resend token configured for sender domain {domain}")
        raise Misconfigured(f"No Resend token configured for domain {domain}")
    return token


def build_payload(
    request: SendEmailRequest,
    sender_email: str,
    default_sender_name: Optional[str] = None,
) -> dict:
    """
    Build the Resend send body.

    text / html are only included when supplied; Resend treats an empty
    string differently from an absent field.
    """
    sender_name = request.from_name or default_sender_name or DEFAULT_SENDER_NAME
    payload = {
        "from": f"{sender_name} <{sender_email}>",
        "to": list(request.to),
        "subject": request.subject,
    }
    if request.text:
        payload["text"] = request.text
    if request.html:
        payload["html"] = request.html
    return payload


def _provider_error_message(error) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(getattr(error, "message", None) or error)


def send_email(
    request: SendEmailRequest,
    settings: GatewaySettings,
    db,
    provider: Optional[ResendProvider] = None,
    load_tokens: Callable[[object], Dict[str, str]] = load_resend_tokens,
) -> SendResult:
    """
    Validate, resolve the token and send one email through Resend.

    The access key has already been checked by the router dependency.

    Raises:
        InvalidInput: missing/empty fields or a malformed recipient.
        Misconfigured: no sender address, or no token for its domain.
        ProviderError: Resend returned an error or the call raised.
    """
    _validate(request)

    sender_email = settings.sender_email
    if not sender_email:
        raise Misconfigured("Sender email not configured")

    # Only touch the settings table once the request itself is known good
    token = resolve_token(sender_email, load_tokens(db))

    payload = build_payload(request, sender_email, settings.sender_name)
    provider = provider or ResendProvider()

    try:
        response = provider.send(token, payload)
    except Exception as e:
        logger.error(f"Resend send failed: {e}")
        raise ProviderError(f"Failed to send email: {_provider_error_message(e)}")

    error = response.get("error") if isinstance(response, dict) else None
    if error:
        message = _provider_error_message(error)
        logger.error(f"Resend rejected send: {message}")
        raise ProviderError(f"Failed to send email: {message}")

    message_id = None
    if isinstance(response, dict):
        # Older SDK releases wrap the body as {"data": {"id": ...}}
        message_id = response.get("id") or (response.get("data") or {}).get("id")
    if not message_id:
        raise ProviderError("Failed to send email: no message id returned")

    logger.info(f"Email {message_id} accepted by Resend for {len(request.to)} recipient(s)")

    return SendResult(
        message_id=str(message_id),
        sent_to=list(request.to),
        subject=request.subject,
        sent_at=datetime.now(timezone.utc).isoformat(),
    )

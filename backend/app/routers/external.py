"""
External API: send email through Resend and look up received email.

Both endpoints require the internal access key, supplied as
``X-API-KEY: <key>`` or ``Authorization: Bearer <key>``. The key check runs
as a router dependency, so an unauthenticated request never reaches the
database or Resend.

Endpoints:
  POST /send-email   - send one email from the system sender
  POST /query-email  - newest received emails for a recipient address
"""

import logging

from fastapi import APIRouter, Depends

from app.auth import verify_api_key
from app.config import GatewaySettings, get_settings
from app.db import get_db
from app.models.email import ApiResponse, QueryEmailRequest, SendEmailRequest
from app.services.email_query import query_emails
from app.services.sender import ResendProvider, send_email

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_api_key)])


def get_provider() -> ResendProvider:
    return ResendProvider()


@router.post(
    "/send-email",
    response_model=ApiResponse,
    responses={
        200: {
            "description": "Email accepted by Resend",
            "content": {
                "application/json": {
                    "example": {
                        "code": 200,
                        "message": "success",
                        "data": {
                            "messageId": "4ef9a417-02e9-4d39-ad75-9611e0fcc33c",
                            "sentTo": ["user@example.com"],
                            "subject": "Your verification code",
                            "sentAt": "2026-04-05T09:00:00.000000+00:00",
                        },
                    }
                }
            },
        },
        400: {"description": "Missing subject/content/recipients or a malformed address"},
        401: {"description": "Missing or invalid API key"},
        500: {"description": "Sender or Resend token not configured, or Resend rejected the send"},
    },
)
async def send_external_email(
    body: SendEmailRequest,
    settings: GatewaySettings = Depends(get_settings),
    db=Depends(get_db),
    provider: ResendProvider = Depends(get_provider),
):
    """
    Send a transactional email from the configured system sender.

    At least one of text/html is required. fromName overrides the
    SYSTEM_SENDER_NAME display name for this message only.
    """
    result = send_email(body, settings, db, provider=provider)
    return ApiResponse.ok(result.model_dump(by_alias=True))


@router.post(
    "/query-email",
    response_model=ApiResponse,
    responses={
        200: {"description": "Matching received emails, newest first (at most 50)"},
        400: {"description": "toEmail missing or malformed"},
        401: {"description": "Missing or invalid API key"},
        500: {"description": "Database unavailable or query failed"},
    },
)
async def query_external_email(
    body: QueryEmailRequest,
    db=Depends(get_db),
):
    """
    Look up received, non-deleted emails addressed to toEmail.

    minutesAgo (when positive) replaces startTime/endTime with
    "the last N minutes". size defaults to 10 and is capped at 50.
    """
    records = query_emails(db, body)
    return ApiResponse.ok([record.model_dump(by_alias=True) for record in records])

"""
Error taxonomy for the external gateway.

Every failure a route can produce maps to one of these HTTPException
subclasses so FastAPI renders it with the right status code:

  InvalidInput   400 - malformed or missing caller fields
  Unauthorized   401 - missing or wrong access key (generic message only)
  Misconfigured  500 - required server-side configuration is absent
  ProviderError  500 - Resend rejected or failed the send
  StorageError   500 - the email store could not be queried

app.main registers a handler that turns these into the
{"code": ..., "message": ...} error envelope.
"""

from fastapi import HTTPException


class GatewayError(HTTPException):
    """Base class; subclasses fix the status code."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(status_code=self.status_code, detail=message)
        self.message = message


class InvalidInput(GatewayError):
    status_code = 400


class Unauthorized(GatewayError):
    status_code = 401

    def __init__(self, message: str = "Invalid API key"):
        super().__init__(message)


class Misconfigured(GatewayError):
    status_code = 500


class ProviderError(GatewayError):
    status_code = 500


class StorageError(GatewayError):
    status_code = 500

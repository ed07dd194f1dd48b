"""
Mail Gateway API
FastAPI application exposing the external send/query email endpoints.
"""

import logging
import os

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.routers import external
from app.db import supabase_admin
from app.models.email import ErrorResponse

# Configure logging to output to console
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Mail Gateway API",
    description="Authenticated gateway for sending email via Resend and querying received email",
    version="0.1.0",
)


def _error_response(status_code: int, message: str) -> JSONResponse:
    body = ErrorResponse(code=status_code, message=message)
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render every HTTPException (GatewayError included) as {code, message}."""
    return _error_response(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies are caller errors: 400 with the first problem spelled out."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Invalid request body: {location} {first.get('msg', '')}".strip()
    else:
        message = "Invalid request body"
    return _error_response(400, message)


# Include routers
app.include_router(external.router, prefix="/external", tags=["external"])


@app.on_event("startup")
async def log_startup_url() -> None:
    """Log where the API is listening (HOST_PORT, default 8000)."""
    host_port = os.getenv("HOST_PORT", "8000")
    logger.info("Mail Gateway API running at: http://localhost:%s", host_port)


@app.get("/")
async def root():
    return {"message": "Mail Gateway API", "version": "0.1.0"}


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/health/db")
async def health_db():
    """
    Test the Supabase database connection.

    Executes a lightweight query (one id from the email table) to verify
    that the admin client can reach the database. Returns 503 on failure.
    """
    if supabase_admin is None:
        raise HTTPException(
            status_code=503,
            detail="Database client unavailable: SUPABASE_SERVICE_KEY is not configured",
        )

    try:
        supabase_admin.table("email").select("email_id").limit(1).execute()
        return {"status": "ok", "database": "reachable"}
    except Exception as exc:
        logger.error(f"Database health check failed: {exc}")
        raise HTTPException(
            status_code=503,
            detail=f"Database connection failed: {str(exc)}",
        )

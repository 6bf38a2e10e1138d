"""Main FastAPI application handler for Lambda deployment."""

import logging
import time
from datetime import UTC, datetime

import boto3
from botocore.exceptions import ClientError
from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from mangum import Mangum

from services.digest_service import (
    DigestService,
    create_bedrock_client,
    translate_client_error,
)
from services.errors import DigestError, UpstreamError
from services.request_validator import validate_digest_request
from services.response_relay import (
    create_sse_response,
    error_response,
    relay_events,
    success_response,
)
from utils.config import DigestSettings, load_settings

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

# Initialize FastAPI app
app = FastAPI(
    title="Digest API",
    description="Scans real estate communities for trends, pain points, and product opportunities",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

CORS_ORIGINS = load_settings().cors_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request, call_next):
    """Log all API requests with timing for CloudWatch monitoring."""
    start = time.time()
    response = await call_next(request)
    duration_ms = (time.time() - start) * 1000

    path = request.url.path
    if duration_ms > 1000:
        logger.warning(
            "[SLOW] %s %s %.0fms status=%d",
            request.method,
            path,
            duration_ms,
            response.status_code,
        )
    elif response.status_code >= 500:
        logger.error(
            "[ERROR] %s %s %.0fms status=%d",
            request.method,
            path,
            duration_ms,
            response.status_code,
        )
    elif response.status_code >= 400:
        logger.info(
            "[CLIENT_ERROR] %s %s %.0fms status=%d",
            request.method,
            path,
            duration_ms,
            response.status_code,
        )

    return response


# Lazy-initialized AWS client
# Required for Lambda SnapStart - connections must be re-established after restore
_bedrock_client = None


def reset_services():
    """Reset lazy-initialized clients. Useful for testing."""
    global _bedrock_client
    _bedrock_client = None
    boto3.DEFAULT_SESSION = None


def get_bedrock_client(settings: DigestSettings):
    """Get or create the bedrock-runtime client (lazy init for SnapStart)."""
    global _bedrock_client
    if _bedrock_client is None:
        _bedrock_client = create_bedrock_client(settings)
    return _bedrock_client


def get_digest_service(settings: DigestSettings) -> DigestService:
    """Build a DigestService for one request."""
    return DigestService(settings=settings, bedrock=get_bedrock_client(settings))


# MARK: - Health Check


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "version": "1.0.0",
    }


# MARK: - Digest Endpoint


@app.post("/api/digest")
async def create_digest(request: Request):
    """Run a digest for the posted messages.

    Streams SSE events by default; returns a buffered JSON envelope when
    DIGEST_RESPONSE_MODE=buffered.
    """
    settings = load_settings()
    raw_body = await request.body()
    digest_request = validate_digest_request(raw_body, settings)

    logger.info(
        "Digest request: %d messages, timeframe=%s, mode=%s",
        len(digest_request.messages),
        digest_request.timeframe,
        settings.response_mode,
    )

    try:
        service = get_digest_service(settings)
        if settings.response_mode == "buffered":
            text = await run_in_threadpool(service.run_digest, digest_request)
            return success_response(text)

        body = await run_in_threadpool(
            relay_events, service.stream_digest(digest_request)
        )
    except DigestError:
        raise
    except ClientError as e:
        raise translate_client_error(e)
    except Exception as e:
        logger.error("Digest API error: %s", e)
        raise UpstreamError()

    return create_sse_response(body)


# MARK: - Error Handlers


@app.exception_handler(DigestError)
async def digest_error_handler(request, exc: DigestError):
    """Handle configuration, validation and upstream errors."""
    return error_response(exc)


@app.exception_handler(ClientError)
async def aws_client_error_handler(request, exc: ClientError):
    """Handle AWS client errors that escaped the gateway."""
    return error_response(translate_client_error(exc))


# MARK: - Lambda Handler

# Create the Lambda handler
api_handler = Mangum(app, lifespan="off")


# For local development
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)

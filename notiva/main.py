import logging
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Response, Request, Depends, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from notiva.config import Settings, get_settings
from notiva.exceptions import MessageServiceError
from notiva.logging_utils import setup_logging, RequestLoggingMiddleware, log_operation_data
from notiva.metrics import get_metrics, get_metrics_content_type
from notiva.service import MessageService, get_message_service
from notiva.storage import create_http_client
from notiva.schemas import (
    HealthResponse,
    StatusResponse,
    SendMessageRequest,
    SendMessageResponse,
    MessagesListResponse,
    DecryptMessageRequest,
    DecryptMessageResponse,
)


# Setup structured JSON logging
setup_logging(get_settings().LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    - Startup: open the shared HTTP client for the content store
    - Shutdown: close it
    """
    settings = get_settings()
    app.state.http_client = create_http_client(settings)
    logger.info(
        "NOTIVA message service starting",
        extra={
            "port": settings.PORT,
            "github_username": settings.GITHUB_USERNAME,
            "github_repo": settings.GITHUB_REPO,
            "token_configured": settings.token_configured,
        }
    )
    if not settings.token_configured:
        logger.warning("GITHUB_TOKEN not set; message operations will fail until it is configured")
    yield
    await app.state.http_client.aclose()


app = FastAPI(
    title="NOTIVA Message Service",
    description="Relays Atbash-obfuscated messages through per-user inbox files in a GitHub repository",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)


# =============================================================================
# Error Handlers
# =============================================================================

def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=StatusResponse(success=False, message=message).model_dump()
    )


@app.exception_handler(MessageServiceError)
async def message_service_error_handler(request: Request, exc: MessageServiceError) -> JSONResponse:
    log_data = getattr(request.state, "operation_log_data", None)
    if log_data is not None:
        log_data["result"] = type(exc).__name__
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
    return _error_response(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info(f"Invalid request body: {exc.errors()}")
    return _error_response(status.HTTP_400_BAD_REQUEST, "Invalid request body")


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"{request.method} {request.url.path} failed unexpectedly: {exc}")
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


# =============================================================================
# Health Check Routes
# =============================================================================

@app.get("/health/live", response_model=HealthResponse)
async def health_live() -> HealthResponse:
    """
    Liveness probe - always returns 200 once the app is running.
    """
    return HealthResponse(status="ok")


@app.get("/health/ready", response_model=HealthResponse)
async def health_ready(response: Response, settings: Settings = Depends(get_settings)) -> HealthResponse:
    """
    Readiness probe - returns 200 only if GITHUB_TOKEN is set.

    Otherwise returns 503 (Service Unavailable).
    """
    if not settings.token_configured:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(status="not_ready", reason="GITHUB_TOKEN not configured")
    return HealthResponse(status="ready")


# =============================================================================
# Message Routes
# =============================================================================

@app.get("/api/test", response_model=StatusResponse)
async def test_connection(
    request: Request,
    settings: Settings = Depends(get_settings),
    service: MessageService = Depends(get_message_service)
) -> StatusResponse:
    """
    Connectivity probe: writes a timestamped blob under test/.

    Without a token this answers 200 with success=false rather than an error.
    """
    log_operation_data(request, "test")
    if not settings.token_configured:
        log_operation_data(request, "test", result="not_configured")
        return StatusResponse(success=False, message="GitHub token not configured")

    message = await service.test_connection()
    log_operation_data(request, "test", result="ok")
    return StatusResponse(success=True, message=message)


@app.post(
    "/api/messages/send",
    response_model=SendMessageResponse,
    responses={
        400: {"model": StatusResponse, "description": "Missing required fields"},
        409: {"model": StatusResponse, "description": "Inbox changed during write"},
        500: {"model": StatusResponse, "description": "Store or configuration error"},
    }
)
async def send_message(
    request: Request,
    body: SendMessageRequest,
    service: MessageService = Depends(get_message_service)
) -> SendMessageResponse:
    """
    Encrypt a message and append it to the recipient's inbox.

    Body:
        - from: sender identifier
        - to: recipient identifier
        - message: plaintext
    """
    log_operation_data(request, "send")
    sent = await service.send(body.from_user, body.to, body.message)
    log_operation_data(request, "send", message_id=sent.message_id, result="ok")

    return SendMessageResponse(
        messageId=sent.message_id,
        encrypted=sent.encrypted,
        timestamp=sent.timestamp
    )


@app.post(
    "/api/messages/decrypt",
    response_model=DecryptMessageResponse,
    responses={
        400: {"model": StatusResponse, "description": "Missing required fields"},
        404: {"model": StatusResponse, "description": "Inbox or message not found"},
        409: {"model": StatusResponse, "description": "Inbox changed during write"},
        500: {"model": StatusResponse, "description": "Store or configuration error"},
    }
)
async def decrypt_message(
    request: Request,
    body: DecryptMessageRequest,
    service: MessageService = Depends(get_message_service)
) -> DecryptMessageResponse:
    """
    Mark a message as read and return it with its plaintext.
    """
    log_operation_data(request, "read", message_id=body.messageId)
    record = await service.read_message(body.username, body.messageId)
    log_operation_data(request, "read", message_id=body.messageId, result="ok")
    return DecryptMessageResponse(message=record)


@app.get("/api/messages/{username}", response_model=MessagesListResponse)
async def list_messages(
    request: Request,
    username: str,
    service: MessageService = Depends(get_message_service)
) -> MessagesListResponse:
    """
    List every message in a user's inbox, in the order they were sent.
    """
    log_operation_data(request, "list")
    messages = await service.list_messages(username)
    log_operation_data(request, "list", result="ok")
    return MessagesListResponse(messages=messages)


# =============================================================================
# Metrics Route
# =============================================================================

@app.get("/metrics")
async def metrics() -> Response:
    """
    Expose Prometheus-style metrics.
    """
    return Response(
        content=get_metrics(),
        media_type=get_metrics_content_type()
    )


# =============================================================================
# Front-end Routes
# =============================================================================

def _static_response(settings: Settings, relative_path: str = "") -> Response:
    """
    Serve a file from STATIC_DIR, falling back to index.html so the
    front-end can do its own routing.
    """
    root = Path(settings.STATIC_DIR).resolve()
    if relative_path:
        candidate = (root / relative_path).resolve()
        if candidate.is_file() and root in candidate.parents:
            return FileResponse(candidate)

    index = root / "index.html"
    if not index.is_file():
        logger.warning(f"Front-end entry document missing: {index}")
        return _error_response(status.HTTP_404_NOT_FOUND, "Front-end not available")
    return FileResponse(index)


@app.get("/", include_in_schema=False)
async def index(settings: Settings = Depends(get_settings)) -> Response:
    return _static_response(settings)


# Registered last so it only sees paths no other route matched
@app.get("/{full_path:path}", include_in_schema=False)
async def front_end(full_path: str, settings: Settings = Depends(get_settings)) -> Response:
    if full_path == "api" or full_path.startswith("api/"):
        return _error_response(status.HTTP_404_NOT_FOUND, "Not found")
    return _static_response(settings, full_path)


def run() -> None:
    """Start the service with uvicorn on the configured port."""
    settings = get_settings()
    uvicorn.run("notiva.main:app", host="0.0.0.0", port=settings.PORT, log_config=None)


if __name__ == "__main__":
    run()

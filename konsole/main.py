"""Proxy service application."""

from contextlib import asynccontextmanager
from uuid import uuid4

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from konsole.api import CorrelationIdMiddleware, router
from konsole.api.assistant import router as assistant_router
from konsole.api.evaluations import router as evaluations_router
from konsole.config import get_settings
from konsole.errors import ProxyError
from konsole.services.backend_proxy import close_backend_proxy
from konsole.services.logging_service import configure_logging, get_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging on startup; close the outbound client on shutdown."""
    settings = get_settings()
    configure_logging(settings.log_level)
    logger = get_logger("konsole.main")

    if settings.use_mock_data:
        logger.warning("mock_mode_enabled", mock_data_dir=str(settings.mock_data_dir))

    logger.info(
        "proxy_started",
        backend_url=settings.backend_url,
        timeout_seconds=settings.backend_timeout_seconds,
        mock_mode=settings.use_mock_data,
    )

    yield

    await close_backend_proxy()
    logger.info("proxy_stopped")


app = FastAPI(
    title="Konsole Evaluation Proxy",
    description="Forwards evaluation, dataset and assistant requests to the evaluation backend",
    version="0.1.0",
    lifespan=lifespan,
)


def describe_validation_error(exc: RequestValidationError) -> str:
    """One-line description of the first validation problem."""
    errors = exc.errors()
    if not errors:
        return "Request validation failed"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ["unknown"]))
    return f"Field '{location}': {first.get('msg', 'Validation failed')}"


@app.exception_handler(ProxyError)
async def proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
    """Render proxy failures as ``{error, details}`` with their status code."""
    structlog.get_logger().warning(
        "proxy_error",
        status_code=exc.status_code,
        error=exc.error,
        details=exc.details,
    )
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Reject malformed requests with 400 before anything is forwarded."""
    correlation_id = getattr(request.state, "correlation_id", None) or str(uuid4())
    details = describe_validation_error(exc)
    structlog.get_logger().warning("validation_error", details=details)

    return JSONResponse(
        status_code=400,
        content={
            "error": "Validation error",
            "details": details,
            "correlation_id": correlation_id,
        },
    )


# The console may also be served from a browser origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(CorrelationIdMiddleware)

app.include_router(evaluations_router)
app.include_router(assistant_router)
app.include_router(router)

"""Courier Backend Application.

This is the main entry point for the Courier chat backend. Courier persists
one-to-one chats and their messages, serves them over REST, and pushes live
updates (new messages, typing, presence, read receipts) over WebSockets.

Modules:
    - chats: chat creation and listing
    - messages: sending and fetching messages (delivery engine)
    - realtime: WebSocket presence, chat rooms and typing indicators
    - profiles: external user-profile service client
    - uploads: image attachment storage
"""
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from courier.chats.router import router as chats_router
from courier.config import get_config
from courier.errors import BadRequestError, CourierError, InternalError
from courier.messages.router import router as messages_router
from courier.realtime.router import router as realtime_router
from courier.storage import Database
from courier.uploads.router import router as uploads_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Silence verbose third-party loggers.
# httpx/httpcore log every TCP connection made to the profile service.
for _noisy in (
    "httpx",
    "httpcore",
    "httpcore.http11",
    "httpcore.connection",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config = get_config()

    # Apply configured log level to root logger so that
    # `logging.level: "debug"` in courier.settings.yaml activates DEBUG output.
    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    Database.get_instance(config.database.path)
    logger.info(f"Database ready at {config.database.path}")
    logger.info(f"User service at {config.user_service.base_url}")

    yield  # Application runs here

    # Shutdown
    Database.reset_instance()
    logger.info("Application shutdown complete")


# Create FastAPI application with metadata
app = FastAPI(
    title="Courier API",
    description="Real-time one-to-one chat backend",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_config().server.allowed_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)


@app.exception_handler(CourierError)
async def courier_error_handler(request: Request, exc: CourierError) -> JSONResponse:
    """Render taxonomy errors as {"message": ...} with their status."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Render malformed request input as a 400 {"message": ...}."""
    problems = []
    for detail in exc.errors():
        field = ".".join(str(part) for part in detail.get("loc", ()) if part != "body")
        problems.append(f"{field}: {detail.get('msg')}" if field else str(detail.get("msg")))
    error = BadRequestError("; ".join(problems) or "Invalid request")
    logger.info(f"{request.method} {request.url.path} -> 400: {error.message}")
    return JSONResponse(error.to_dict(), status_code=error.status_code)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    """Log every request and turn uncaught handler failures into a 500."""
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    except Exception as exc:
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        error = InternalError(str(exc))
        return JSONResponse(error.to_dict(), status_code=error.status_code)
    finally:
        latency_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.info(f"{request.method} {request.url.path} {status_code} {latency_ms}ms")


# Register all routers
app.include_router(chats_router)
app.include_router(messages_router)
app.include_router(realtime_router)
app.include_router(uploads_router)


@app.get("/health")
async def health() -> dict:
    """Health check endpoint.

    Returns:
        dict: Status object indicating the server is running.
    """
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    server = get_config().server
    uvicorn.run(app, host=server.host, port=server.port)

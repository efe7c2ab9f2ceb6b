"""
Degen Gambit Main Application Entry Point
FastAPI service around the slot machine, with WebSocket notifications.
"""

import sys
from pathlib import Path

# Add parent directory to path so imports work when running directly
if __name__ == "__main__":
    sys.path.insert(0, str(Path(__file__).parent.parent))

import time
from collections import deque
from contextlib import asynccontextmanager

import orjson as json
import uvicorn
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from gambit.config import settings
from gambit.core.exceptions import GambitError
from gambit.core.gambit import DegenGambit
from gambit.core.logger import get_logger, init_logging
from gambit.core.scheduler import BlockProducer
from gambit.core.websocket import ws_manager
from gambit.routers import admin, api

# Initialize logging first
init_logging(
    level=settings.logging.level,
    log_to_file=settings.logging.log_to_file,
    formatter=settings.logging.formatter,
    log_file_path=settings.paths.get_log_path(),
)
logger = get_logger("main")
ws_logger = get_logger("websocket")


# WebSocket Rate Limiting
WS_MAX_MESSAGES = 10  # Max messages per connection
WS_RATE_LIMIT_SECONDS = 2  # In this time window


# ==================== Security Headers Middleware ====================


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        return response


# ==================== Application Setup ====================

@asynccontextmanager
async def lifespan(app: FastAPI):
    producer = getattr(app.state, "block_producer", None)
    if producer:
        producer.start()
    yield
    if producer:
        producer.shutdown()


def create_app(machine: DegenGambit = None, produce_blocks: bool = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        machine: Slot machine to serve (built from settings when omitted)
        produce_blocks: Mine blocks in the background; defaults to config
    """
    app = FastAPI(
        title=settings.server.name,
        lifespan=lifespan,
        docs_url="/docs" if settings.server.debug else None,
        redoc_url=None,
    )

    app.state.machine = machine or DegenGambit.from_settings(settings)
    if produce_blocks is None:
        produce_blocks = settings.chain.produce_blocks

    # Add slowapi rate limiter
    app.state.limiter = api.limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(GambitError, gambit_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)

    app.add_middleware(SecurityHeadersMiddleware)

    # CORS middleware (for development)
    if settings.server.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(api.router, prefix="/api")
    app.include_router(admin.router, prefix="/admin")
    app.add_api_websocket_route("/ws", websocket_endpoint)

    if produce_blocks:
        app.state.block_producer = BlockProducer(
            app.state.machine, settings.chain.block_interval_seconds
        )

    logger.info(
        f"Application '{settings.server.name}' initialized",
        extra={"current_block": app.state.machine.clock.current_block, "produce_blocks": produce_blocks},
    )
    return app


# ==================== Exception Handlers ====================


async def gambit_exception_handler(request: Request, exc: GambitError):
    """Machine signals become JSON errors with their own status code."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def global_exception_handler(request: Request, exc: Exception):
    """Handle unhandled exceptions gracefully."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.server.debug else None,
        },
    )


# ==================== WebSocket Endpoint ====================


async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for live machine notifications.
    Supports:
    - ping / pong keep-alive
    - subscribe / unsubscribe to "spins" and "awards"
    """
    client_ip = websocket.client.host if websocket.client else None
    await ws_manager.connect(websocket)
    ws_logger.info("WebSocket connected", extra={"client_ip": client_ip})

    timestamps = deque()

    try:
        while True:
            data = await websocket.receive_text()

            current_time = time.time()
            while timestamps and timestamps[0] < current_time - WS_RATE_LIMIT_SECONDS:
                timestamps.popleft()

            if len(timestamps) >= WS_MAX_MESSAGES:
                ws_logger.warning("WebSocket rate limit exceeded", extra={"client_ip": client_ip})
                # Silently drop the message
                continue
            timestamps.append(current_time)

            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                continue
            if not isinstance(message, dict):
                continue

            msg_type = message.get("type")
            if msg_type == "ping":
                await websocket.send_bytes(json.dumps({"type": "pong"}))
            elif msg_type == "subscribe":
                topic = message.get("topic")
                if topic:
                    await ws_manager.subscribe(websocket, topic)
            elif msg_type == "unsubscribe":
                topic = message.get("topic")
                if topic:
                    await ws_manager.unsubscribe(websocket, topic)

    except WebSocketDisconnect as e:
        ws_manager.disconnect(websocket)
        ws_logger.info(
            "WebSocket disconnected",
            extra={"client_ip": client_ip, "ws_disconnect_code": e.code},
        )
    except Exception as e:
        ws_manager.disconnect(websocket)
        ws_logger.error("WebSocket error", extra={"client_ip": client_ip, "error": str(e)})


app = create_app()


# ==================== Main Entry Point ====================

if __name__ == "__main__":
    logger.info(f"Starting server on {settings.server.host}:{settings.server.port}")
    uvicorn.run(
        "gambit.main:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.server.debug,
    )

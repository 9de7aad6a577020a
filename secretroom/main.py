"""
Secret room solve portal entrypoint (FastAPI).

This module wires together:
- App startup/shutdown (lifespan): close live solve sessions on shutdown
- Global middleware: request logging + CORS
- Router registration: solve WebSocket/snapshot + health endpoints
"""

# -------------------- Standard library imports --------------------
import logging
import sys
from contextlib import asynccontextmanager
from time import time

# -------------------- Third-party imports --------------------
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# -------------------- Environment configuration --------------------
# Load `.env` before settings are read so env-only deployments and `.env` agree.
load_dotenv()

# -------------------- Local application imports --------------------
from secretroom.api import solve_ws as solve_module  # noqa: E402
from secretroom.api.health import router as health_router  # noqa: E402
from secretroom.api.solve_ws import router as solve_router  # noqa: E402
from secretroom.config import settings  # noqa: E402

# -------------------- Logging --------------------
# Log to stdout (for containers/terminal) and optionally to a local file.
_handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
if settings.log_file:
    _handlers.append(logging.FileHandler(settings.log_file))
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=_handlers,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events for the FastAPI application."""

    # -------------------- Startup --------------------
    logger.info("🚀 Solve portal starting up (upstream %s)...", settings.api_b)

    yield

    # -------------------- Shutdown --------------------
    # Cancel lockout countdowns of any still-open room views (no dangling callbacks).
    closed = await solve_module.close_all_sessions()
    logger.info("🛑 Solve portal shutting down (%s live sessions closed)...", closed)


# -------------------- FastAPI app --------------------
app = FastAPI(
    title="Secret Room Solve Portal",
    lifespan=lifespan,
)

# -------------------- CORS --------------------
ALLOWED_ORIGINS = settings.allowed_origins.split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_origin_regex=settings.allowed_origin_regex,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request, call_next):
    # Lightweight access log with timing; errors include stack traces for debugging.
    start_time = time()

    logger.info(
        "%s %s - Client: %s",
        request.method,
        request.url.path,
        request.client.host if request.client else "unknown",
    )

    try:
        response = await call_next(request)
        process_time = time() - start_time
        logger.info(
            "%s %s - Status: %s - Duration: %.3fs",
            request.method,
            request.url.path,
            response.status_code,
            process_time,
        )
        return response
    except Exception as exc:
        process_time = time() - start_time
        logger.error(
            "%s %s - Error: %s - Duration: %.3fs",
            request.method,
            request.url.path,
            str(exc),
            process_time,
            exc_info=True,
        )
        raise


@app.get("/health")
async def health():
    # Minimal liveness probe used by local tooling / reverse proxies.
    return {"status": "ok"}


# -------------------- Router registration --------------------
app.include_router(solve_router, prefix="/api")
app.include_router(health_router, prefix="/api")

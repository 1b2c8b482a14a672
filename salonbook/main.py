import asyncio
import logging
import os
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from salonbook.api.routes import appointments, notifications, settings as settings_routes, slots, time_blocks
from salonbook.core.config import _ENV_FILE, settings
from salonbook.core.errors import SchedulingError
from salonbook.services.scheduler_service import run_pending_sweep, run_reminder_scheduling

if os.getenv("ENV") != "production":
    logging.basicConfig(level=logging.DEBUG)
else:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s"}',
    )
logger = logging.getLogger(__name__)


async def _run_job(name: str, job: Callable[[], Awaitable[None]]) -> None:
    try:
        await job()
    except Exception as e:
        logger.exception("%s failed: %s", name, e)


async def _job_loop(name: str, job: Callable[[], Awaitable[None]], interval_seconds: int) -> None:
    # Run once at startup, then every interval
    while True:
        await _run_job(name, job)
        await asyncio.sleep(interval_seconds)


@asynccontextmanager
async def lifespan(app: FastAPI):
    _startup_log()
    tasks: list[asyncio.Task] = []
    if settings.scheduler_enabled:
        tasks.append(
            asyncio.create_task(
                _job_loop("Pending notification sweep", run_pending_sweep, settings.pending_sweep_interval_seconds)
            )
        )
        tasks.append(
            asyncio.create_task(
                _job_loop("Reminder scheduling", run_reminder_scheduling, settings.reminder_interval_seconds)
            )
        )
    yield
    for task in tasks:
        task.cancel()
    for task in tasks:
        try:
            await task
        except asyncio.CancelledError:
            pass


app = FastAPI(
    title="SalonBook API",
    description="Backend for salon scheduling: availability, appointments, notifications",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(slots.router, prefix="/api/v1")
app.include_router(appointments.router, prefix="/api/v1")
app.include_router(settings_routes.router, prefix="/api/v1")
app.include_router(time_blocks.router, prefix="/api/v1")
app.include_router(notifications.router, prefix="/api/v1")


def _cors_headers(origin: str | None) -> dict[str, str]:
    """Add CORS headers to error responses so the browser doesn't block them."""
    headers = {
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "GET, POST, PUT, PATCH, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Authorization, Content-Type",
    }
    if origin and origin in settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = origin
    elif settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = settings.cors_origins_list[0]
    return headers


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    logger.info("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
        headers=_cors_headers(request.headers.get("origin")),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return actual error in JSON; include CORS so 500 responses are not blocked by browser."""
    origin = request.headers.get("origin")
    headers = _cors_headers(origin)
    if isinstance(exc, HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=headers,
        )
    logger.exception("Unhandled exception: %s", exc)
    detail = f"{type(exc).__name__}: {str(exc)}"
    return JSONResponse(
        status_code=500,
        content={"detail": detail},
        headers=headers,
    )


def _startup_log() -> None:
    logger.info("Loading .env from: %s (exists: %s)", _ENV_FILE, _ENV_FILE.exists())
    logger.info(
        "Scheduler: %s (sweep every %ds, reminders every %ds)",
        "enabled" if settings.scheduler_enabled else "disabled",
        settings.pending_sweep_interval_seconds,
        settings.reminder_interval_seconds,
    )
    if not settings.email_enabled:
        logger.warning("Email: NOT configured. Set SMTP_HOST, SMTP_USER, SMTP_PASSWORD, FROM_EMAIL in %s", _ENV_FILE)
    if not settings.twilio_enabled:
        logger.warning("Twilio: NOT configured. SMS and WhatsApp delivery will fail over to email")


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}

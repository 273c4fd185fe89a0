# main.py
import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Callable, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from flowday import database
from flowday.config import get_settings
from flowday.features.reminders import APSchedulerTimers, InAppMessages, ReminderScheduler
from flowday.features.reminders.service import NotificationHost
from flowday.features.reminders.timers import TimerBackend
from flowday.logging import init_logging, RequestLoggingMiddleware
from flowday.routes import router
from flowday.services import task_service
from flowday.utils.push_notify import WebhookNotificationHost

logger = logging.getLogger("flowday")


def create_app(
    *,
    timers_factory: Optional[Callable[[], TimerBackend]] = None,
    host: Optional[NotificationHost] = None,
) -> FastAPI:
    """Composition root: wires the store, the reminder scheduler and the routes."""
    settings = get_settings()
    init_logging()

    # -----------------------------------------------------------------------
    # App lifespan (startup/shutdown)
    # -----------------------------------------------------------------------
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Startup: initializing database...")
        try:
            await database.init_db_async()
            logger.info("Connected to database: %s", database.get_database_dsn())
        except Exception as e:
            logger.critical("Database initialization failed: %s", e)
            raise  # fail fast: app should not start without its store

        # Timers are created here so APScheduler binds to the running loop
        timers = timers_factory() if timers_factory else APSchedulerTimers()
        reminders = ReminderScheduler(
            timers,
            host or WebhookNotificationHost(
                settings.push_url,
                settings.push_token,
                timeout=settings.push_timeout_seconds,
            ),
            InAppMessages(limit=settings.inapp_message_limit),
            check_interval=timedelta(seconds=max(1, settings.reminder_check_interval_seconds)),
        )
        reminders.set_task_checker(lambda: task_service.sync_reminders(reminders))
        app.state.reminders = reminders

        logger.info("Startup: starting reminder scheduler...")
        timers.start()
        reminders.initialize()
        try:
            armed = await task_service.sync_reminders(reminders)
            logger.info("Reminder scheduler started (%d reminder(s) armed)", armed)
        except Exception as e:
            logger.error("Failed to arm initial reminders: %s", e)

        yield  # app runs during this block

        logger.info("Shutdown: stopping reminder scheduler...")
        reminders.teardown()
        timers.shutdown()

        logger.info("Shutdown: closing database...")
        try:
            await database.shutdown_db_async()
            logger.info("Cleanup complete.")
        except Exception as e:
            logger.error("Error during shutdown cleanup: %s", e)

    app = FastAPI(
        title=f"{settings.app_name} API",
        version="1.0.0",
        description=(
            "Personal task and calendar service.\n\n"
            "Features:\n"
            "- Create, filter, complete and delete tasks\n"
            "- Monthly calendar and completion analytics\n"
            "- Reminders delivered as push notifications and in-app messages"
        ),
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/", tags=["Health"])
    async def root():
        """Basic health check to verify the service is running."""
        return {"status": "ok", "message": f"{settings.app_name} is running."}

    app.include_router(router)
    _register_error_handlers(app)
    return app


# -------------------------------
# Unified error response handlers
# -------------------------------
def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        logger.warning(
            "HTTPException: %s %s -> %s | detail=%s",
            request.method,
            request.url.path,
            exc.status_code,
            exc.detail,
        )
        body = {"error": exc.detail if isinstance(exc.detail, str) else "Error"}
        if isinstance(exc.detail, dict):
            body = {
                "error": exc.detail.get("error") or "Error",
                "details": exc.detail.get("details"),
            }
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.error(
            "ValidationError: %s %s | errors=%s",
            request.method,
            request.url.path,
            exc.errors(),
        )
        return JSONResponse(
            status_code=400,
            content={
                "error": "Validation failed",
                "details": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "Unhandled exception: %s %s",
            request.method,
            request.url.path,
        )
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


app = create_app()

# TutorTime - Main Application
# FastAPI application factory and startup

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tutortime.config import get_settings
from tutortime.database import check_connection
from tutortime.services.errors import TimeEntryError


settings = get_settings()
logger = logging.getLogger("tutortime")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan events.

    Runs on startup and shutdown.
    """
    # Startup
    logger.info("Starting %s...", settings.app_name)

    # Verify database connection
    try:
        check_connection()
        logger.info("Database connection: OK")
    except Exception as e:
        logger.error("Database connection: FAILED - %s", e)
        if not settings.debug:
            raise

    yield

    # Shutdown
    logger.info("Shutting down %s...", settings.app_name)


async def time_entry_error_handler(request: Request, exc: TimeEntryError) -> JSONResponse:
    """Map expected service failures to their HTTP status with a JSON body."""
    level = logging.WARNING if exc.status_code >= 500 or exc.retryable else logging.INFO
    logger.log(level, "%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    """
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title=settings.app_name,
        description="Time entry reconciliation and pay periods for tutoring franchises",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
    )

    app.add_exception_handler(TimeEntryError, time_entry_error_handler)

    # Include routers
    from tutortime.routes import attestation, clock, pay_period, schedule, time_entry
    app.include_router(clock.router)
    app.include_router(time_entry.router)
    app.include_router(attestation.router)
    app.include_router(pay_period.router)
    app.include_router(schedule.router)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        """Health check endpoint for monitoring."""
        try:
            check_connection()
            db_status = "healthy"
        except Exception as e:
            db_status = f"unhealthy: {e}"

        return {
            "status": "ok",
            "app": settings.app_name,
            "database": db_status,
        }

    return app


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tutortime.main:app",
        host="0.0.0.0",
        port=8001,
        reload=settings.debug,
    )

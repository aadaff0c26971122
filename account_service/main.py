"""FastAPI application initialization."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from dotenv import load_dotenv

# Load environment variables before anything else
load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from account_service import __version__, database
from account_service.api.errors import register_exception_handlers
from account_service.api.middleware import CorrelationIdMiddleware
from account_service.api.users import router as users_router
from account_service.config import get_settings
from account_service.services.logging_service import configure_logging, get_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    settings = get_settings()
    configure_logging(settings.log_level, json_output=settings.log_json)
    logger = get_logger("main")

    try:
        await database.init_database(settings)
        await database.run_migrations()
        logger.info("database_initialized")
    except Exception as e:
        logger.warning(
            "database_initialization_failed",
            error=str(e),
            note="Continuing without database - account endpoints will fail until it is reachable",
        )

    logger.info("application_started", log_level=settings.log_level)

    yield

    await database.close_database()
    logger.info("application_shutdown")


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="Account Service",
        description="Credentials, token sessions and channel profiles for user accounts",
        version=__version__,
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    app.include_router(users_router)

    @app.get("/health")
    async def health_check() -> dict:
        """Report service and database health."""
        db_healthy = await database.health_check()
        return {
            "status": "ok" if db_healthy else "degraded",
            "database": "healthy" if db_healthy else "unhealthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    app.mount(
        "/media",
        StaticFiles(directory=settings.media_root, check_dir=False),
        name="media",
    )

    return app


app = create_app()

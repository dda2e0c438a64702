import logging
import os
import sys
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

import click
import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

from tutorworld.core.cache import close_redis_client, get_redis_client
from tutorworld.core.config import settings
from tutorworld.core.database import Database
from tutorworld.core.errors import AppError
from tutorworld.core.init import initialize_application
from tutorworld.core.limiter import custom_rate_limit_exceeded_handler, limiter
from tutorworld.core.security import token_blacklist
from tutorworld.routers import routes
from tutorworld.utils.email import EmailNotifier

# ============================================================================
# Directory Setup
# ============================================================================
BASE_DIR = Path(__file__).parent
LOG_FILE = Path(settings.log_file)
if not LOG_FILE.is_absolute():
    LOG_FILE = BASE_DIR / LOG_FILE
LOGS_DIR = LOG_FILE.parent

LOGS_DIR.mkdir(parents=True, exist_ok=True)
os.chmod(LOGS_DIR, 0o755)


# ============================================================================
# Logging Configuration
# ============================================================================
def setup_logging():
    """Configure logging for the application."""
    log_level = logging.DEBUG if settings.debug else logging.INFO
    log_format = "%(asctime)s - %(levelname)s - [%(name)s:%(lineno)d] %(message)s"

    handlers = [
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(LOG_FILE, mode="a", encoding="utf-8"),
    ]

    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=handlers,
        force=True,  # Override any existing configuration
    )

    # Suppress verbose third-party logs
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    return logging.getLogger(__name__)


logger = setup_logging()


# ============================================================================
# Application Lifespan
# ============================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown."""
    logger.info("=" * 80)
    logger.info("Starting application...")
    logger.info("=" * 80)

    try:
        # A database or notifier may already be attached, e.g. by tests
        database = getattr(app.state, "database", None) or Database(settings.sqlalchemy_url)
        database.connect()
        database.create_all()
        app.state.database = database
        logger.info("✓ Database tables ready")

        db = database.session()
        try:
            initialize_application(db)
        finally:
            db.close()

        if getattr(app.state, "notifier", None) is None:
            app.state.notifier = EmailNotifier()

        if settings.redis_enabled:
            token_blacklist.redis_client = get_redis_client()
            logger.info("✓ Token blacklist backed by Redis")

        logger.info("✓ Application startup completed successfully")

    except Exception as e:
        logger.error(f"✗ Failed during startup: {e}", exc_info=True)
        raise

    yield  # Application is running

    logger.info("=" * 80)
    logger.info("Shutting down application...")
    logger.info("=" * 80)
    if settings.redis_enabled:
        token_blacklist.redis_client = None
        close_redis_client()
    app.state.database.close()
    logger.info("✓ Application shutdown completed")


# ============================================================================
# FastAPI Application
# ============================================================================
def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        description=settings.app_description,
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        debug=settings.debug,
        lifespan=lifespan,
    )

    # ------------------------------------------------------------------------
    # Middleware Configuration
    # ------------------------------------------------------------------------
    app.state.limiter = limiter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_process_time_header(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = f"{process_time:.4f}"
        return response

    # Request ID middleware for tracing
    @app.middleware("http")
    async def add_request_id(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    # ------------------------------------------------------------------------
    # Exception Handlers
    # ------------------------------------------------------------------------
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(f"{exc.kind}: {exc.message}")
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message, "type": exc.kind},
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error: {exc.errors()}")
        details = []
        for error in exc.errors():
            details.append(
                {
                    "loc": list(error.get("loc", [])),
                    "msg": str(error.get("msg", "")),
                    "type": error.get("type"),
                }
            )
        return JSONResponse(
            status_code=422,
            content={"error": "Validation error", "type": "validation_error", "details": details},
        )

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
        logger.error(f"SQLAlchemy error: {type(exc).__name__}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Database error occurred", "type": "database_error"},
        )

    app.add_exception_handler(RateLimitExceeded, custom_rate_limit_exceeded_handler)

    # ------------------------------------------------------------------------
    # Health Check Endpoints
    # ------------------------------------------------------------------------
    @app.get("/")
    async def root():
        """Root endpoint with basic application info."""
        return {
            "app_name": settings.app_name,
            "version": settings.app_version,
            "status": "healthy",
            "environment": "production" if settings.production else "development",
        }

    @app.get("/health")
    @limiter.limit("10/minute")
    async def health_check(request: Request):
        """Detailed health check endpoint."""
        db_status = "healthy" if request.app.state.database.ping() else "unhealthy"
        return {
            "status": "healthy" if db_status == "healthy" else "degraded",
            "timestamp": time.time(),
            "environment": "production" if settings.production else "development",
            "database": db_status,
        }

    for router in routes:
        app.include_router(router)

    logger.info(f"✓ Registered {len(routes)} routers")
    return app


app = create_app()


# ============================================================================
# CLI Commands
# ============================================================================
@click.group()
def cli():
    """Tutor World API management CLI."""
    pass


@cli.command("init-db")
def init_db():
    """Create tables and seed the default admin."""
    database = Database(settings.sqlalchemy_url).connect()
    try:
        database.create_all()
        db = database.session()
        try:
            initialize_application(db)
        finally:
            db.close()
        click.echo("Database initialized successfully")
    finally:
        database.close()


@cli.command()
@click.option("--host", default="127.0.0.1", help="Host to bind the server to")
@click.option("--port", default=8000, help="Port to run the server on")
@click.option("--reload", is_flag=True, help="Enable auto-reload (development only)")
def dev(host: str, port: int, reload: bool):
    """Run development server with Uvicorn."""
    logger.info("Starting development server...")
    logger.info(f"  - Host: {host}")
    logger.info(f"  - Port: {port}")
    logger.info(f"  - Reload: {reload}")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=reload,
        log_level="debug",
        access_log=True,
    )


@cli.command()
@click.option("--host", default="0.0.0.0", help="Host to bind the server to")
@click.option("--port", default=8000, help="Port to run the server on")
@click.option("--workers", default=4, help="Number of worker processes")
def prod(host: str, port: int, workers: int):
    """Run production server with Gunicorn."""
    logger.info("Starting production server with Gunicorn...")
    logger.info(f"  - Host: {host}")
    logger.info(f"  - Port: {port}")
    logger.info(f"  - Workers: {workers}")

    import subprocess

    cmd = [
        "gunicorn",
        "main:app",
        "--worker-class",
        "uvicorn.workers.UvicornWorker",
        "--workers",
        str(workers),
        "--bind",
        f"{host}:{port}",
        "--access-logfile",
        "-",
        "--error-logfile",
        "-",
        "--log-level",
        "info",
        "--timeout",
        "120",
        "--graceful-timeout",
        "30",
        "--keep-alive",
        "5",
    ]

    try:
        subprocess.run(cmd, check=True)
    except subprocess.CalledProcessError as e:
        logger.error(f"Gunicorn failed to start: {e}")
        raise click.ClickException(str(e))
    except FileNotFoundError:
        logger.error("Gunicorn not found. Install it with: pip install gunicorn")
        raise click.ClickException("Gunicorn not installed")


@cli.command()
def info():
    """Display application information."""
    click.echo(f"Application: {settings.app_name}")
    click.echo(f"Version: {settings.app_version}")
    click.echo(f"Debug Mode: {settings.debug}")
    click.echo(f"Database: {settings.db_host}:{settings.db_port}/{settings.db_database}")
    click.echo(f"Redis Enabled: {settings.redis_enabled}")
    click.echo(f"Mail Enabled: {settings.mail_enabled}")
    click.echo(f"Logs Directory: {LOGS_DIR.absolute()}")


if __name__ == "__main__":
    cli()

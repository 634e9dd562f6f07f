"""
Tablebook - Restaurant reservations admin API
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from app.config import settings
from app.database import engine, SessionLocal
from app.log import configure_logging
from app.api import auth, dashboard, reservations, tables
from app.schemas.reservation import ALL_SCOPE
from app.services.data_source import FetchFailure
from app.services.pg_changes import PgChangeListener, asyncpg_dsn, is_postgres_url
from app.services.reservation_store import ReservationStore
from app.services.sql_source import SqlDataSource

configure_logging()

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting Tablebook API", version="1.0.0")

    data_source = SqlDataSource(
        SessionLocal,
        default_duration_minutes=settings.default_duration_minutes,
    )

    listener = None
    if settings.db_listen_changes and is_postgres_url(settings.database_url):
        listener = PgChangeListener(asyncpg_dsn(settings.database_url), data_source.feed)
        try:
            await listener.start()
            # Triggers now report our own writes too
            data_source.publish_writes = False
        except FetchFailure as e:
            logger.warning("Falling back to in-process change notifications", error=str(e))
            listener = None

    store = ReservationStore(data_source, scope=ALL_SCOPE)
    try:
        await store.load()
    except FetchFailure as e:
        logger.warning("Initial reservation load failed", error=str(e))

    def on_reservations_changed() -> None:
        logger.debug("Shared reservation cache refreshed", count=len(store.records))

    store.subscribe(on_reservations_changed)

    app.state.data_source = data_source
    app.state.reservation_store = store

    yield

    await store.close()
    if listener is not None:
        await listener.stop()
    await engine.dispose()
    logger.info("Shutting down Tablebook API")


# Create FastAPI application
app = FastAPI(
    title="Tablebook",
    description="Reservation dashboard and administration for a single restaurant",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(FetchFailure)
async def fetch_failure_handler(request: Request, exc: FetchFailure):
    """Data source errors that reach a route become 503s"""
    logger.error("Data source failure", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=503, content={"detail": "Data source unavailable"})


# Health check endpoint
@app.get("/health")
async def health():
    """Basic health check"""
    return {"status": "healthy", "service": "api", "version": "1.0.0"}


# Include API routers
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(dashboard.router, prefix="/admin/dashboard", tags=["Dashboard"])
app.include_router(reservations.router, prefix="/admin/reservations", tags=["Reservations"])
app.include_router(tables.router, prefix="/admin/tables", tags=["Tables"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
    )

"""
Tablebook agent functions application
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import structlog

from app.config import settings
from app.database import engine, SessionLocal
from app.log import configure_logging
from app.functions import router as functions_router
from app.services.sql_source import SqlDataSource

configure_logging()

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting Tablebook functions", version="1.0.0")
    app.state.data_source = SqlDataSource(
        SessionLocal,
        default_duration_minutes=settings.default_duration_minutes,
    )
    yield
    await engine.dispose()
    logger.info("Shutting down Tablebook functions")


app = FastAPI(
    title="Tablebook Functions",
    description="Availability and reservation endpoints for external agents",
    version="1.0.0",
    lifespan=lifespan,
)

# Agents call from anywhere
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(functions_router.router, tags=["Functions"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.functions.main:app",
        host=settings.api_host,
        port=settings.functions_port,
        reload=settings.api_debug,
    )

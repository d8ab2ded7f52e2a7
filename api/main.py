"""
FastAPI Application - Narrative Pipeline API
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from config import settings, ensure_directories
from database import close_engine, init_database_async, init_engine
from scheduler import PipelineScheduler
from utils.logger import init_logging
from .routes import router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    init_logging("api")
    ensure_directories()
    await init_engine()
    await init_database_async()

    scheduler = PipelineScheduler()
    app.state.scheduler = scheduler
    if settings.PIPELINE_AUTOSTART:
        scheduler.start()
    else:
        logger.info("Pipeline autostart disabled, manual trigger only")

    yield

    scheduler.stop()
    await close_engine()


app = FastAPI(
    title="Narrative Pipeline",
    description="Per-post and per-company insights for bitcoin-mining news",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routes
app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Narrative Pipeline",
        "version": "1.0.0",
        "status": "running",
    }


def run():
    """Serve the API with uvicorn."""
    import uvicorn

    uvicorn.run("api.main:app", host=settings.API_HOST, port=settings.API_PORT)


if __name__ == "__main__":
    run()

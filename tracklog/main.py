"""
HTTP service over a folder of compact track files.

The data folder comes from TRACKLOG_DATA_FOLDER at startup and can be
changed at runtime through POST /folder.
"""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tracklog.api.sessions import router as sessions_router, folder_router
from tracklog.services.repository import init_repository, get_repository


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


DEFAULT_DATA_FOLDER = Path("./data/sessions")
DATA_FOLDER_ENV = "TRACKLOG_DATA_FOLDER"

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Index the configured data folder unless one is already set."""
    logger.info("Starting Tracklog")

    repo = get_repository()
    if repo.data_folder is None:
        data_folder = Path(os.getenv(DATA_FOLDER_ENV, str(DEFAULT_DATA_FOLDER)))
        if data_folder.exists():
            init_repository(data_folder)
            logger.info(f"Initialized repository with folder: {data_folder}")
        else:
            logger.info(f"No session folder at {data_folder}, waiting for POST /folder")

    yield

    logger.info("Tracklog stopped")


app = FastAPI(
    title="Tracklog",
    description=(
        "Compact binary storage of recorded activity tracks. "
        "Point POST /folder at a directory of .ctb files, import CSV logs "
        "through POST /sessions/import and read sessions back as JSON or raw bytes."
    ),
    version=VERSION,
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["*"],
)


app.include_router(sessions_router)
app.include_router(folder_router)


@app.get("/")
async def root():
    """Service name and version."""
    return {
        "name": "Tracklog",
        "version": VERSION,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Repository state: configured folder and number of indexed sessions."""
    repo = get_repository()

    return {
        "status": "healthy",
        "data_folder": str(repo.data_folder) if repo.data_folder else None,
        "session_count": repo.session_count,
    }

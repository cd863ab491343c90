from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from orgmirror.api.routes import app as app_endpoints
from orgmirror.api.routes import github as github_endpoints
from orgmirror.api.handlers.exception_handlers import unprocessable_entity_exception_handler
from orgmirror.config import settings
from orgmirror.config.db import create_db_and_tables
from orgmirror.services import runtime
from orgmirror.utils.logger import logger, setup_logger

setup_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    On startup it optionally creates the tables and starts the poll
    scheduler; on shutdown it stops the scheduler.
    """
    logger.info("Starting up...")
    if settings.AUTO_CREATE_TABLES:
        create_db_and_tables()

    scheduler = None
    if settings.POLL_ENABLED:
        scheduler = runtime.poll_scheduler()
        scheduler.start()

    yield

    if scheduler is not None:
        scheduler.stop(timeout=5)
    logger.info("Shutting down...")


app = FastAPI(
    title="orgmirror",
    description="Mirrors a GitHub organization and automates pull request review",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_exception_handler(RequestValidationError, unprocessable_entity_exception_handler)

app.include_router(app_endpoints.router, tags=["general"])
app.include_router(github_endpoints.router, tags=["github"])

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.core.database import dispose_engine
from app.core.firebase import initialize_firebase
from app.core.logging import _initialize_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging and Firebase before serving; release the database pool on shutdown."""
  from app.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("app.core.lifespan")

  try:
    _initialize_logging(settings)
  except RuntimeError:
    logger.warning("Initial logging setup failed; continuing with default handlers.", exc_info=True)

  if not initialize_firebase(settings):
    logger.warning("Firebase unavailable; push notifications will run in disabled mode.")
  logger.info("Startup complete environment=%s", settings.environment)

  yield

  await dispose_engine()
  logger.info("Shutdown complete")

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from urllib.parse import urlparse

from fastapi import FastAPI

from app.core.database import dispose_engine
from app.core.env_contract import EnvContractError, validate_runtime_env_or_raise
from app.core.logging import _initialize_logging
from app.notifications.factory import close_event_router, get_event_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging and the shared push client, then release both on shutdown."""
  from app.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("app.core.lifespan")

  try:
    _initialize_logging(settings)
    logger.info("Startup complete - logging verified.")
    # Enforce startup env contracts before app dependencies are initialized.
    validate_runtime_env_or_raise(logger=logger)
    logger.info("Database DSN=%s apns_environment=%s", _redact_dsn(settings.pg_dsn), settings.apns_environment)

  except EnvContractError:
    # Fail-fast when required startup configuration is missing or invalid.
    logger.error("Environment contract failed; refusing to start the service.", exc_info=True)
    raise

  except Exception:  # noqa: BLE001
    logger.warning("Initial logging setup failed; continuing with default handlers.", exc_info=True)

  # Build the event router eagerly so the HTTP/2 connection pool is shared from the first event.
  get_event_router(settings)

  try:
    yield
  finally:
    await close_event_router()
    await dispose_engine()
    logger.info("Shutdown complete - push client and database pool released.")


def _redact_dsn(raw: str | None) -> str:
  """Redact credentials from a DSN while keeping host/db visible."""
  if not raw:
    return "<unset>"

  parsed = urlparse(raw)
  if not parsed.scheme:
    return "<invalid>"

  user = parsed.username or ""
  host = parsed.hostname or ""
  port = f":{parsed.port}" if parsed.port else ""
  netloc = f"{user}@{host}{port}" if user else f"{host}{port}"
  database = parsed.path.lstrip("/")
  path = f"/{database}" if database else ""
  return f"{parsed.scheme}://{netloc}{path}"

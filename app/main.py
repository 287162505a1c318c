from __future__ import annotations

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException

from app.api.routes import devices, notifications, triggers
from app.core.exceptions import global_exception_handler, http_exception_handler, request_validation_exception_handler
from app.core.lifespan import lifespan
from app.core.middleware import RequestLoggingMiddleware

app = FastAPI(lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)


# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok"}


app.include_router(triggers.router, prefix="/v1/triggers", tags=["triggers"])
app.include_router(devices.router, prefix="/v1/users", tags=["devices"])
app.include_router(notifications.router, prefix="/v1/users", tags=["notifications"])

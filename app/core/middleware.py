import logging
import time
from typing import Any

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.utils.ids import generate_request_id

logger = logging.getLogger("app.core.middleware")


def _build_request_url(scope: Scope) -> str:
  """Build a readable path for logging; query strings are dropped."""
  return scope.get("path", "")


class RequestLoggingMiddleware:
  """Log request metadata and latency, and tag responses with a request id.

  Bodies are never read here: trigger payloads carry user content.
  """

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    # Store the id for downstream handlers and exception logging.
    request_id = generate_request_id()
    scope.setdefault("state", {})["request_id"] = request_id

    start_time = time.time()
    method = scope.get("method", "UNKNOWN")
    url = _build_request_url(scope)
    logger.info("Incoming request request_id=%s %s %s", request_id, method, url)

    status_code: int | None = None

    async def send_wrapper(message: Message) -> None:
      nonlocal status_code
      if message.get("type") == "http.response.start":
        status_code = message.get("status")
        response_headers = MutableHeaders(scope=message)
        if "x-request-id" not in response_headers:
          response_headers["x-request-id"] = request_id
      await send(message)

    try:
      await self.app(scope, receive, send_wrapper)
    except Exception:
      duration_ms = (time.time() - start_time) * 1000
      logger.error("Request failed request_id=%s %s %s duration_ms=%.2f", request_id, method, url, duration_ms, exc_info=True)
      raise

    duration_ms = (time.time() - start_time) * 1000
    log_args: tuple[Any, ...] = (request_id, method, url, status_code, duration_ms)
    if status_code is not None and status_code >= 500:
      logger.error("Request completed request_id=%s %s %s status=%s duration_ms=%.2f", *log_args)
    else:
      logger.info("Request completed request_id=%s %s %s status=%s duration_ms=%.2f", *log_args)

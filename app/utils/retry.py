"""Bounded retry for operations whose failure is signalled by their result."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy(Generic[T]):
  """Retry an attempt only when `should_retry` recognises its result.

  `prepare_retry` runs between attempts (e.g. to refresh credentials). Results
  that are not recognised, and the result of the final attempt, are returned
  as-is so callers keep the provider response.
  """

  should_retry: Callable[[T], bool]
  prepare_retry: Callable[[T], Awaitable[None]] | None = None
  max_retries: int = 1

  async def run(self, *, operation_name: str, attempt: Callable[[], Awaitable[T]]) -> T:
    result = await attempt()
    retries = 0
    while retries < self.max_retries and self.should_retry(result):
      retries += 1
      logger.info("Retrying operation=%s retry=%d/%d", operation_name, retries, self.max_retries)
      if self.prepare_retry is not None:
        await self.prepare_retry(result)
      result = await attempt()

    return result

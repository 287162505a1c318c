"""Identifier utilities."""

from __future__ import annotations

import secrets
import string
import uuid


def generate_execution_id(size: int = 6) -> str:
  """Return a short correlation id for one trigger execution."""
  alphabet = string.ascii_lowercase + string.digits
  return "".join(secrets.choice(alphabet) for _ in range(size))


def generate_request_id() -> str:
  """Return a new HTTP request identifier."""
  return str(uuid.uuid4())


def parse_uuid(raw: object) -> uuid.UUID | None:
  """Coerce a row value into a UUID, returning None when it is not one."""
  if isinstance(raw, uuid.UUID):
    return raw
  if not isinstance(raw, str):
    return None
  try:
    return uuid.UUID(raw.strip())
  except ValueError:
    return None

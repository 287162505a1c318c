"""Runtime environment contract checks for the notification service.

How/Why:
- Keep runtime configuration explicit so deploy-time mistakes fail immediately.
- Prevent secret leakage by redacting sensitive values in startup logs.
- APNs keys are optional at startup; without them every push reports a configuration failure.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass

EnvValidator = Callable[[str, dict[str, str]], str | None]


@dataclass(frozen=True)
class EnvVarDefinition:
  """Describe how an environment variable must be validated."""

  name: str
  required: bool
  secret: bool
  validator: EnvValidator | None = None


class EnvContractError(RuntimeError):
  """Raised when required runtime environment keys are missing or invalid."""


def _parse_bool(raw: str | None, *, default: bool = False) -> bool:
  """Parse boolean-ish environment values consistently for contract checks."""
  if raw is None:
    return default

  return raw.strip().lower() in {"1", "true", "yes", "on"}


def _validate_non_empty(value: str, _: dict[str, str]) -> str | None:
  """Ensure a value is not blank after trimming whitespace."""
  if value.strip() == "":
    return "must not be empty."

  return None


def _validate_environment_name(value: str, _: dict[str, str]) -> str | None:
  """Keep environment names predictable for deployment and startup controls."""
  normalized = value.strip().lower()
  if normalized in {"dev", "development", "stage", "staging", "prod", "production", "test", "testing"}:
    return None

  return "must be one of: development, stage, production, test (or aliases)."


def _validate_apns_environment(value: str, _: dict[str, str]) -> str | None:
  if value.strip().lower() in {"sandbox", "development", "production", "prod"}:
    return None

  return "must be 'sandbox' or 'production'."


def _validate_positive_int(value: str, _: dict[str, str]) -> str | None:
  try:
    parsed = int(value.strip())
  except ValueError:
    return "must be an integer."

  if parsed <= 0:
    return "must be a positive integer."

  return None


def _validate_private_key(value: str, _: dict[str, str]) -> str | None:
  """Catch keys pasted without their PEM armor before the first push does."""
  if "BEGIN PRIVATE KEY" not in value or "END PRIVATE KEY" not in value:
    return "must be a PKCS#8 PEM private key (.p8 contents)."

  return None


REQUIRED_ENV_REGISTRY: tuple[EnvVarDefinition, ...] = (
  EnvVarDefinition(name="SOCIAL_ENV", required=True, secret=False, validator=_validate_environment_name),
  EnvVarDefinition(name="SOCIAL_PG_DSN", required=True, secret=True, validator=_validate_non_empty),
  EnvVarDefinition(name="SOCIAL_TRIGGER_SECRET", required=True, secret=True, validator=_validate_non_empty),
  EnvVarDefinition(name="SOCIAL_PUSH_MAX_CONCURRENCY", required=False, secret=False, validator=_validate_positive_int),
  EnvVarDefinition(name="APNS_KEY_ID", required=False, secret=False),
  EnvVarDefinition(name="APNS_TEAM_ID", required=False, secret=False),
  EnvVarDefinition(name="APNS_BUNDLE_ID", required=False, secret=False),
  EnvVarDefinition(name="APNS_KEY_P8", required=False, secret=True, validator=_validate_private_key),
  EnvVarDefinition(name="APNS_ENVIRONMENT", required=False, secret=False, validator=_validate_apns_environment),
)


def _resolve_value(*, definition: EnvVarDefinition) -> str:
  """Resolve values with the DATABASE_URL alias for hosted Postgres providers."""
  raw = os.getenv(definition.name)
  if raw is not None:
    return raw

  if definition.name == "SOCIAL_PG_DSN":
    return os.getenv("DATABASE_URL", "")

  return ""


def list_required_env_names() -> tuple[str, ...]:
  """Expose required key names for deploy automation."""
  return tuple(definition.name for definition in REQUIRED_ENV_REGISTRY if definition.required)


def validate_env_values(*, env_map: dict[str, str]) -> list[str]:
  """Validate a provided env map against contract rules."""
  errors: list[str] = []
  for definition in REQUIRED_ENV_REGISTRY:
    value = env_map.get(definition.name, "")
    if definition.required and value.strip() == "":
      errors.append(f"{definition.name}: required variable is missing.")
      continue

    if definition.validator and value.strip() != "":
      validation_error = definition.validator(value, env_map)
      if validation_error:
        errors.append(f"{definition.name}: {validation_error}")

  return errors


def validate_runtime_env_or_raise(*, logger: logging.Logger) -> None:
  """Validate and log runtime env values using the centralized contract."""
  # Default to False so CI images can boot without full config.
  # Production environments should explicitly set SOCIAL_ENV_CONTRACT_ENFORCE=1.
  env_contract_enabled = _parse_bool(os.getenv("SOCIAL_ENV_CONTRACT_ENFORCE"), default=False)
  resolved_values: dict[str, str] = {}
  for definition in REQUIRED_ENV_REGISTRY:
    value = _resolve_value(definition=definition)
    resolved_values[definition.name] = value
    if definition.secret:
      logger.info("ENV_CHECK key=%s value=%s", definition.name, "<redacted>" if value else "<missing>")
    else:
      if value == "":
        logger.info("ENV_CHECK key=%s value=<missing>", definition.name)
      else:
        logger.info("ENV_CHECK key=%s value=%s", definition.name, value)

  missing_apns = [name for name in ("APNS_KEY_ID", "APNS_KEY_P8", "APNS_TEAM_ID", "APNS_BUNDLE_ID") if resolved_values.get(name, "").strip() == ""]
  if missing_apns:
    logger.warning("ENV_CHECK push delivery disabled; missing %s", ", ".join(missing_apns))

  errors = validate_env_values(env_map=resolved_values)

  if not errors:
    logger.info("ENV_CHECK status=ok checked=%d", len(REQUIRED_ENV_REGISTRY))
    return

  message = "ENV_CHECK status=failed violations:\n- {errors}".format(errors="\n- ".join(errors))
  if env_contract_enabled:
    logger.error(message)
    raise EnvContractError(message)

  logger.warning("ENV_CHECK enforcement disabled by SOCIAL_ENV_CONTRACT_ENFORCE=0")
  logger.warning(message)

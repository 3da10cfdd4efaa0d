import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

# Environment variable names
STORAGE_CONNECTION_VAR = "STORAGE_CONNECTION_STRING"
DATABASE_CONNECTION_VAR = "SQL_CONNECTION_STRING"
NOTIFICATION_KEY_VAR = "SENDGRID_API_KEY"

REQUIRED_SETTINGS = (STORAGE_CONNECTION_VAR, DATABASE_CONNECTION_VAR, NOTIFICATION_KEY_VAR)

DEFAULT_SOURCE_CONTAINER = "accident-extracts"
DEFAULT_REGION = "eu-central-1"
DEFAULT_OPERATION_TIMEOUT = 600  # seconds
DEFAULT_NOTIFY_FROM = "pipeline@example.com"
DEFAULT_NOTIFY_TO = "data-team@example.com"


class ConfigurationError(Exception):
    """Raised when a required setting is missing or malformed."""


@dataclass(frozen=True)
class PipelineConfig:
    """Settings shared by every stage, validated once per invocation."""

    storage_connection: str
    database_connection: str
    notification_api_key: str
    source_container: str = DEFAULT_SOURCE_CONTAINER
    region: str = DEFAULT_REGION
    operation_timeout: int = DEFAULT_OPERATION_TIMEOUT
    notify_from: str = DEFAULT_NOTIFY_FROM
    notify_to: str = DEFAULT_NOTIFY_TO


def load_config(env: Optional[Mapping[str, str]] = None) -> PipelineConfig:
    """
    Build a PipelineConfig from the environment.

    Values are read from ``env`` when given, otherwise from ``os.environ``
    after loading a ``.env`` file if one is present.

    Raises:
        ConfigurationError: if a required setting is absent or a numeric
            setting cannot be parsed
    """
    if env is None:
        load_dotenv()
        env = os.environ

    missing = [name for name in REQUIRED_SETTINGS if not (env.get(name) or "").strip()]
    if missing:
        raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")

    raw_timeout = env.get("OPERATION_TIMEOUT") or str(DEFAULT_OPERATION_TIMEOUT)
    try:
        operation_timeout = int(raw_timeout)
    except ValueError:
        raise ConfigurationError(f"OPERATION_TIMEOUT must be an integer, got {raw_timeout!r}")

    return PipelineConfig(
        storage_connection=env[STORAGE_CONNECTION_VAR].strip(),
        database_connection=env[DATABASE_CONNECTION_VAR].strip(),
        notification_api_key=env[NOTIFICATION_KEY_VAR].strip(),
        source_container=env.get("SOURCE_CONTAINER") or DEFAULT_SOURCE_CONTAINER,
        region=env.get("AWS_REGION") or DEFAULT_REGION,
        operation_timeout=operation_timeout,
        notify_from=env.get("NOTIFY_FROM") or DEFAULT_NOTIFY_FROM,
        notify_to=env.get("NOTIFY_TO") or DEFAULT_NOTIFY_TO,
    )

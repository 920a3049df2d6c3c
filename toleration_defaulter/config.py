"""Configuration for the toleration defaulter.

Settings are read once at startup from an optional YAML file and then
overridden by environment variables.
"""

import os
from enum import Enum
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from toleration_defaulter.codec import TolerationSource
from toleration_defaulter.exceptions import ConfigurationError
from toleration_defaulter.logging_config import get_logger
from toleration_defaulter.models.toleration import INT64_MAX
from toleration_defaulter.reconciler import DEFAULT_TOLERATION_SECONDS

logger = get_logger(__name__)

ENV_PREFIX = "TOLERATION_DEFAULTER_"

# setting name -> environment variable
ENV_OVERRIDES = {
    "default_toleration_seconds": f"{ENV_PREFIX}DEFAULT_SECONDS",
    "tolerations_storage": f"{ENV_PREFIX}STORAGE",
    "decode_failure_policy": f"{ENV_PREFIX}DECODE_FAILURE_POLICY",
}


class DecodeFailurePolicy(str, Enum):
    """What admission does with a pod whose tolerations cannot be decoded."""

    REJECT = "reject"
    IGNORE = "ignore"


class Settings(BaseModel):
    """Process-wide settings."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    default_toleration_seconds: int = Field(default=DEFAULT_TOLERATION_SECONDS, gt=0, le=INT64_MAX)
    tolerations_storage: TolerationSource = TolerationSource.SPEC
    decode_failure_policy: DecodeFailurePolicy = DecodeFailurePolicy.REJECT


def load_settings(path: str | Path | None = None, environ: dict | None = None) -> Settings:
    """Load settings from a YAML file and the environment.

    Args:
        path: Optional path to a YAML settings file
        environ: Environment mapping, defaults to os.environ

    Returns:
        Validated Settings

    Raises:
        ConfigurationError: If the file is missing or invalid, or a value is rejected
    """
    environ = os.environ if environ is None else environ
    values: dict = {}

    if path is not None:
        path = Path(path)
        logger.debug(f"Reading settings file: {path}")
        if not path.exists():
            raise ConfigurationError(
                f"Settings file not found: {path}",
                f"Expected location: {path.absolute()}",
                path=path,
            )
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Failed to parse settings file: {path}",
                f"The file has invalid YAML syntax: {e}",
                path=path,
            ) from e

        if data is not None and not isinstance(data, dict):
            raise ConfigurationError(
                f"Settings file must contain a mapping: {path}",
                f"Got {type(data).__name__} at the top level",
                path=path,
            )
        values.update(data or {})

    for name, variable in ENV_OVERRIDES.items():
        if variable in environ:
            logger.debug(f"Setting {name} overridden by {variable}")
            values[name] = environ[variable]

    try:
        settings = Settings.model_validate(values)
    except ValidationError as e:
        raise ConfigurationError("Invalid settings", str(e), path=path) from e

    logger.info(
        f"Default toleration seconds: {settings.default_toleration_seconds}, "
        f"storage: {settings.tolerations_storage.value}"
    )
    return settings

"""Configuration loading for the Battle.net strategy.

Configuration comes from a YAML file (path given explicitly or through the
`BLIZZARD_AUTH_CONFIG` environment variable) or directly from the environment:

```yaml
blizzard:
  client_id: ${BLIZZARD_CLIENT_ID}
  client_secret: file:///run/secrets/blizzard_client_secret
  uid_field: battletag
  default_region: eu
```

String values may reference environment variables (`${VAR}`) or files
(`file://path`); references are resolved before validation.
"""

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .models import BlizzardAuthConfigModel

# No logging in this module; it may run before the host configures logging.

CONFIG_ENV_VAR = "BLIZZARD_AUTH_CONFIG"
ENV_VAR_PATTERN = re.compile(r"\${([A-Za-z0-9_]+)}")
FILE_URL_PREFIX = "file://"

_ENV_FIELDS = {
    "client_id": "BLIZZARD_CLIENT_ID",
    "client_secret": "BLIZZARD_CLIENT_SECRET",
    "uid_field": "BLIZZARD_UID_FIELD",
    "default_scope": "BLIZZARD_DEFAULT_SCOPE",
    "default_region": "BLIZZARD_DEFAULT_REGION",
    "callback_path": "BLIZZARD_CALLBACK_PATH",
    "http_timeout": "BLIZZARD_HTTP_TIMEOUT",
}

__all__ = ["config_from_env", "interpolate", "load_config", "resolve_reference"]


def resolve_reference(value: str, environ: Mapping[str, str] | None = None) -> str:
    """Resolve `${VAR}` and `file://` references in a single string.

    Raises:
        ValueError: If a referenced environment variable is not set or a
            referenced file cannot be read.
    """
    env = os.environ if environ is None else environ

    if value.startswith(FILE_URL_PREFIX):
        path = Path(value[len(FILE_URL_PREFIX) :])
        try:
            return path.read_text().strip()
        except OSError as exc:
            raise ValueError(f"Cannot read file reference {value}: {exc}") from exc

    result = value
    for name in ENV_VAR_PATTERN.findall(value):
        if name not in env:
            raise ValueError(f"Environment variable {name} is not set")
        result = result.replace(f"${{{name}}}", env[name])
    return result


def interpolate(config: Any, environ: Mapping[str, str] | None = None) -> Any:
    """Recursively resolve references in a configuration structure."""
    if isinstance(config, str):
        return resolve_reference(config, environ)
    if isinstance(config, dict):
        return {k: interpolate(v, environ) for k, v in config.items()}
    if isinstance(config, list):
        return [interpolate(item, environ) for item in config]
    return config


def load_config(
    path: str | Path | None = None, environ: Mapping[str, str] | None = None
) -> BlizzardAuthConfigModel:
    """Load the provider configuration from a YAML file.

    The file may hold the settings at top level or under a `blizzard` key.
    """
    env = os.environ if environ is None else environ
    if path is None:
        if CONFIG_ENV_VAR not in env:
            raise FileNotFoundError(f"No config path given and {CONFIG_ENV_VAR} is not set")
        path = env[CONFIG_ENV_VAR]

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Blizzard auth config not found at {path}")

    with open(path) as f:
        config_data = yaml.safe_load(f) or {}

    if not isinstance(config_data, dict):
        raise ValueError("Blizzard auth config must be a mapping")

    section = config_data.get("blizzard", config_data)
    if not isinstance(section, dict):
        raise ValueError("The 'blizzard' section must be a mapping")

    try:
        return BlizzardAuthConfigModel.model_validate(interpolate(section, env))
    except ValidationError as exc:
        raise ValueError(f"Invalid Blizzard auth config: {exc}") from exc


def config_from_env(
    environ: Mapping[str, str] | None = None, **overrides: Any
) -> BlizzardAuthConfigModel:
    """Build the provider configuration from `BLIZZARD_*` environment variables.

    `BLIZZARD_CLIENT_ID` and `BLIZZARD_CLIENT_SECRET` are required; keyword
    overrides win over the environment.
    """
    env = os.environ if environ is None else environ
    data: dict[str, Any] = {
        field: env[var] for field, var in _ENV_FIELDS.items() if env.get(var)
    }
    data.update(overrides)

    missing = [_ENV_FIELDS[f] for f in ("client_id", "client_secret") if f not in data]
    if missing:
        raise ValueError(f"Missing required environment variables: {', '.join(missing)}")

    try:
        return BlizzardAuthConfigModel.model_validate(data)
    except ValidationError as exc:
        raise ValueError(f"Invalid Blizzard auth config: {exc}") from exc

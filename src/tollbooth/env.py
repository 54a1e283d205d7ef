import dataclasses
import os
from typing import Any, Union

from .types import Limits

DEFAULT_PREFIX = "TOLLBOOTH_"

# Limits field -> env suffix
_LIMIT_VARS = {
    "timeout_seconds": "TIMEOUT_SECONDS",
    "max_attempts": "MAX_ATTEMPTS",
    "max_concurrent_requests": "MAX_CONCURRENT_REQUESTS",
    "default_max_endpoint_requests": "DEFAULT_MAX_ENDPOINT_REQUESTS",
}


def _parse_env_file(env_path: str) -> dict[str, str]:
    """Parse a simple .env file into a dict without modifying os.environ.

    Supports basic KEY=VALUE pairs, ignoring comments and blank lines.
    Surrounding single/double quotes are stripped if present.
    """
    values: dict[str, str] = {}
    try:
        with open(env_path) as f:
            for raw_line in f:
                line = raw_line.strip()
                if not line or line.startswith("#"):
                    continue
                if line.startswith("export "):
                    line = line[len("export ") :].strip()
                if "=" not in line:
                    continue
                key, val = line.split("=", 1)
                key = key.strip()
                val = val.strip().strip('"').strip("'")
                if key:
                    values[key] = val
    except FileNotFoundError:
        # Silently ignore missing file to make the helper easy to use
        pass
    return values


def env_map(env_path: Union[str, None] = None) -> dict[str, str]:
    """Merged lookup: actual environment takes precedence over the .env file."""
    file_env = _parse_env_file(env_path) if env_path else {}
    return {**file_env, **os.environ}


def load_environments_from_env(
    prefix: str = DEFAULT_PREFIX,
    env_path: Union[str, None] = None,
    **kwargs,
) -> dict[str, str]:
    """Collect ``<prefix>ENV_<NAME>=<base url>`` entries as {name: url}.

    kwargs keywords:
    to_lower_names: make names lowercase (default True)
    """
    to_lower_names = kwargs.get("to_lower_names", True)
    marker = f"{prefix}ENV_"
    results: dict[str, str] = {}
    for var, url in env_map(env_path).items():
        if not (var.startswith(marker) and url):
            continue
        name = var[len(marker) :]
        if not name:
            continue
        results[name.lower() if to_lower_names else name] = url.strip()
    return results


def load_limits_from_env(
    prefix: str = DEFAULT_PREFIX,
    env_path: Union[str, None] = None,
    base: Union[Limits, None] = None,
) -> Limits:
    """Build Limits from ``<prefix>MAX_ATTEMPTS`` and friends; unset values keep ``base``."""
    values = env_map(env_path)
    base = base or Limits()
    overrides: dict[str, Any] = {}
    for field_name, suffix in _LIMIT_VARS.items():
        raw = values.get(f"{prefix}{suffix}")
        if raw is None or not raw.strip():
            continue
        try:
            overrides[field_name] = int(raw)
        except ValueError as e:
            raise ValueError(f"{prefix}{suffix} must be an integer, got {raw!r}") from e
    return dataclasses.replace(base, **overrides)

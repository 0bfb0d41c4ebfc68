"""Shared helpers for resolving CLI, environment, and config-file inputs.

Precedence is CLI parameter, then environment variable, then the optional
YAML config file, then the default.
"""

from __future__ import annotations

import os
from collections import abc as cabc
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from tf_pipeline._pipeline_errors import PipelineValidationError


@dataclass(frozen=True, slots=True)
class InputResolution:
    """Configuration for resolving an input from multiple sources."""

    env_key: str
    default: str | Path | None = None
    required: bool = False
    as_path: bool = False

    @property
    def config_key(self) -> str:
        """Key looked up in the config file (the lower-cased env key)."""
        return self.env_key.lower()


def load_config_file(path: Path | None) -> dict[str, str]:
    """Load a flat YAML mapping of input names to values.

    Examples
    --------
    >>> load_config_file(None)
    {}
    """
    if path is None:
        return {}
    try:
        payload: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        msg = f"Cannot read config file {path}: {exc}"
        raise PipelineValidationError(msg) from exc
    except yaml.YAMLError as exc:
        msg = f"Invalid YAML in config file {path}: {exc}"
        raise PipelineValidationError(msg) from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        msg = f"Config file {path} must contain a mapping"
        raise PipelineValidationError(msg)
    return {
        str(key).lower(): str(value).lower() if isinstance(value, bool) else str(value)
        for key, value in payload.items()
        if value is not None
    }


def resolve_input(
    param_value: str | Path | None,
    resolution: InputResolution,
    env: cabc.Mapping[str, str] | None = None,
    config: cabc.Mapping[str, str] | None = None,
) -> str | Path | None:
    """Resolve input from parameter, environment, config file, or default."""

    if param_value is not None:
        return param_value

    env_value = (os.environ if env is None else env).get(resolution.env_key)
    if env_value is not None:
        return Path(env_value) if resolution.as_path else env_value

    config_value = (config or {}).get(resolution.config_key)
    if config_value is not None:
        return Path(config_value) if resolution.as_path else config_value

    if resolution.required:
        msg = f"{resolution.env_key} is required"
        raise SystemExit(msg)

    return resolution.default


def parse_bool(value: str | None, *, default: bool = True) -> bool:
    """Parse a boolean-like string.

    Examples
    --------
    >>> parse_bool("yes")
    True
    >>> parse_bool(None, default=False)
    False
    """
    if value is None:
        return default
    return value.strip().lower() in ("true", "1", "yes")


def mask_secret(value: str, stream: cabc.Callable[[str], object] = print) -> None:
    """Emit the GitHub Actions masking command for ``value``.

    Only emitted when running inside GitHub Actions.
    """
    if not value or os.environ.get("GITHUB_ACTIONS") != "true":
        return
    for line in value.splitlines():
        if line:
            stream(f"::add-mask::{line}")

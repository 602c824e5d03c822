"""Load config.yaml plus environment variables into validated settings."""

from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .models import AppConfig
from .validators import check_for_warnings, emit_warnings

DEFAULT_CONFIG_CANDIDATES = (
    Path("config.yaml"),
    Path("config") / "config.yaml",
)

_FORMAT_HINTS = ["Review config.example.yaml for correct format"]


def load_config(config_path: Optional[Path] = None) -> tuple[AppConfig, EnvironmentConfig]:
    """
    Load the YAML settings and the environment settings.

    Without an explicit path, config.yaml and then config/config.yaml are
    tried in the working directory; when neither exists every setting takes
    its built-in default.

    Args:
        config_path: Explicit config file; must exist when given

    Returns:
        Tuple of (AppConfig, EnvironmentConfig)

    Raises:
        ConfigurationError: If a file is missing, unreadable or invalid, or an
            environment variable holds an invalid value
    """
    config_file = _find_config_file(config_path)
    raw = _read_yaml(config_file) if config_file is not None else {}

    found_warnings = check_for_warnings(raw)
    if found_warnings:
        emit_warnings(found_warnings)

    return _validate_app_config(raw), load_environment_config()


def _find_config_file(config_path: Optional[Path]) -> Optional[Path]:
    if config_path:
        if not config_path.exists():
            raise ConfigurationError(
                f"Specified configuration file not found: {config_path}",
                suggestions=[
                    f"Ensure {config_path} exists",
                    "Omit --config to use config.yaml or built-in defaults",
                ],
            )
        return config_path

    return next((c for c in DEFAULT_CONFIG_CANDIDATES if c.exists()), None)


def _read_yaml(config_file: Path) -> Dict[str, Any]:
    """Parse a config file; an empty document yields {}."""
    try:
        with open(config_file, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Failed to parse YAML configuration: {e}",
            suggestions=[
                "Check YAML syntax in your config file",
                "Indent with spaces, not tabs",
            ],
        ) from e
    except OSError as e:
        raise ConfigurationError(
            f"Failed to read configuration file {config_file}: {e}",
            suggestions=[f"Check that {config_file} exists and is readable"],
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            "Configuration file must contain a mapping at the top level",
            suggestions=_FORMAT_HINTS,
        )
    return data


def _describe_errors(exc: ValidationError) -> List[str]:
    described = []
    for error in exc.errors():
        where = " -> ".join(str(part) for part in error["loc"])
        kind = error["type"]
        if kind == "missing":
            described.append(f"Missing required field: {where}")
        elif kind.endswith("_type"):
            described.append(
                f"Invalid type for '{where}': expected {kind[:-5]}, got {error.get('input')!r}"
            )
        else:
            described.append(f"{where}: {error['msg']}")
    return described


def _validate_app_config(raw: Dict[str, Any]) -> AppConfig:
    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(
            "Configuration validation failed",
            errors=_describe_errors(e),
            suggestions=_FORMAT_HINTS + ["Verify field types match the expected schema"],
        ) from e

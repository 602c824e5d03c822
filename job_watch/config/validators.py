"""Additional validation utilities for configuration."""

import warnings
from typing import Any, Dict, List

from .duration import DurationParseError, parse_duration


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """
    Check configuration for potential issues and return warnings.

    Args:
        config_dict: Raw configuration dictionary

    Returns:
        List of warning messages
    """
    warning_messages = []

    check = config_dict.get("check", {})
    if isinstance(check, dict):
        if check.get("notify") is False:
            warning_messages.append(
                "Notifications are disabled; alerts will be recorded but never sent"
            )

        scan_interval = check.get("scan_interval", "30m")
        if isinstance(scan_interval, str):
            try:
                interval_seconds = parse_duration(scan_interval)
            except DurationParseError:
                # Reported by schema validation
                interval_seconds = None
            if interval_seconds is not None and interval_seconds < 600:
                warning_messages.append(
                    f"Short scan_interval ({scan_interval}) may trigger job board rate limits"
                )

        sample_size = check.get("preview_sample_size")
        if isinstance(sample_size, int) and sample_size > 100:
            warning_messages.append(
                f"Large preview_sample_size ({sample_size}) makes preview checks slower"
            )

    advanced = config_dict.get("advanced", {})
    if isinstance(advanced, dict):
        timeout = advanced.get("http_request_timeout")
        if isinstance(timeout, (int, float)) and 0 < timeout < 5:
            warning_messages.append(
                f"Short http_request_timeout ({timeout}s) may fail on large job boards"
            )

    return warning_messages


def emit_warnings(warning_messages: List[str]) -> None:
    """
    Emit warning messages using Python's warnings module.

    Args:
        warning_messages: List of warning messages to emit
    """
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)

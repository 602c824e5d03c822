"""Utility functions for time handling."""

from .timestamps import (
    coerce_datetime,
    ensure_utc,
    format_timestamp,
    parse_epoch_millis,
    parse_iso_datetime,
    utc_now,
)

__all__ = [
    "utc_now",
    "ensure_utc",
    "parse_iso_datetime",
    "parse_epoch_millis",
    "coerce_datetime",
    "format_timestamp",
]

"""Shared utilities for batchreel."""

from batchreel.utils.time import format_duration, utc_now

__all__ = ["format_duration", "utc_now"]

"""Time helpers shared by progress tracking and the CLI."""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


def format_duration(seconds: float) -> str:
    """Format a duration as a short human-readable string.

    Examples: ``"42s"``, ``"3m 5s"``, ``"1h 2m"``.
    """
    if seconds < 60:
        return f"{seconds:.0f}s"
    if seconds < 3600:
        minutes = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{minutes}m {secs}s"
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    return f"{hours}h {minutes}m"

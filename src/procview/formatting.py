"""Formatting utilities for consistent output across CLI and TUI."""

from datetime import datetime

BYTE_UNITS = ("B", "KiB", "MiB", "GiB", "TiB")


def format_bytes(size: float) -> str:
    """Format bytes with a binary unit and one decimal, e.g. "1.5 MiB"."""
    value = float(size)
    unit_index = 0
    while value >= 1024 and unit_index < len(BYTE_UNITS) - 1:
        value /= 1024
        unit_index += 1
    return f"{value:.1f} {BYTE_UNITS[unit_index]}"


def format_memory_size(size: float) -> str:
    """Format bytes as GiB, e.g. "15.6 GiB"."""
    return f"{size / 1024**3:.1f} GiB"


def format_percentage(value: float) -> str:
    return f"{value:.1f}%"


def format_uptime(seconds: float) -> str:
    """Format a duration as days, hours and minutes, e.g. "2d 3h 15m"."""
    days = int(seconds // 86400)
    hours = int((seconds % 86400) // 3600)
    minutes = int((seconds % 3600) // 60)
    return f"{days}d {hours}h {minutes}m"


def usage_class(percentage: float) -> str:
    """Bucket a usage percentage into low/medium/high/critical."""
    if percentage >= 90:
        return "critical"
    if percentage >= 60:
        return "high"
    if percentage >= 30:
        return "medium"
    return "low"


def format_date(timestamp: float) -> str:
    """Format epoch seconds as a local date and time."""
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S")

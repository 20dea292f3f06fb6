"""Human-readable byte sizes and transfer speeds."""

from __future__ import annotations

_KB = 1024
_MB = 1024 * 1024
_GB = 1024 * 1024 * 1024


def format_size(num_bytes: float) -> str:
    """Format a byte count: '512 B', '1.5 KB', '2.00 MB', '1.00 GB'."""
    if num_bytes > _GB:
        return f"{num_bytes / _GB:.2f} GB"
    if num_bytes > _MB:
        return f"{num_bytes / _MB:.2f} MB"
    if num_bytes > _KB:
        return f"{num_bytes / _KB:.1f} KB"
    return f"{num_bytes} B"


def format_speed(bytes_per_second: float) -> str:
    """Format a transfer rate: '800 B/s', '12.5 KB/s', '3.20 MB/s'."""
    if bytes_per_second > _MB:
        return f"{bytes_per_second / _MB:.2f} MB/s"
    if bytes_per_second > _KB:
        return f"{bytes_per_second / _KB:.1f} KB/s"
    return f"{bytes_per_second} B/s"

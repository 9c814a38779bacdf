"""Formatting helpers for run details."""

from __future__ import annotations

import math

__all__ = ["format_processing_time", "format_uptime", "format_data_size"]

_SIZE_UNITS = ("Bytes", "KB", "MB", "GB", "TB")


def format_processing_time(ms: float) -> str:
    r"""
    Render a duration in milliseconds as ``"N ms"``, ``"N.NN sec"`` or ``"N.NN min"``.

    Examples
    --------
    >>> format_processing_time(250)
    '250 ms'
    >>> format_processing_time(1500)
    '1.50 sec'
    >>> format_processing_time(90_000)
    '1.50 min'
    """
    if ms < 1000:
        return f"{int(round(ms))} ms"
    if ms < 60_000:
        return f"{ms / 1000:.2f} sec"
    return f"{ms / 60_000:.2f} min"


def format_uptime(seconds: float) -> str:
    r"""
    Render elapsed seconds as zero-padded ``DD:HH:MM:SS``.

    Examples
    --------
    >>> format_uptime(90061)
    '01:01:01:01'
    """
    total = int(max(0.0, seconds))
    days, rem = divmod(total, 86_400)
    hours, rem = divmod(rem, 3600)
    minutes, secs = divmod(rem, 60)
    return f"{days:02d}:{hours:02d}:{minutes:02d}:{secs:02d}"


def format_data_size(n_bytes: int) -> str:
    r"""
    Render a byte count with a binary unit suffix.

    Examples
    --------
    >>> format_data_size(0)
    '0 Bytes'
    >>> format_data_size(2048)
    '2.00 KB'
    """
    if n_bytes <= 0:
        return "0 Bytes"
    exponent = min(int(math.log2(n_bytes) // 10), len(_SIZE_UNITS) - 1)
    return f"{n_bytes / (1 << (exponent * 10)):.2f} {_SIZE_UNITS[exponent]}"

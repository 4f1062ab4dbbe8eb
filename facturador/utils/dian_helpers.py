"""
FACTURADOR-DIAN — Utilities
Helpers for tracking identifiers and simulated-process log lines.
"""

import secrets
import string
import time
from datetime import datetime, timezone

_BASE36 = string.digits + string.ascii_lowercase


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_track_id() -> str:
    """
    Opaque tracking token for fire-and-poll processes.
    Format: base-36 epoch milliseconds + 7 random base-36 characters.
    """
    suffix = "".join(secrets.choice(_BASE36) for _ in range(7))
    return _to_base36(int(time.time() * 1000)) + suffix


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def log_line(message: str) -> str:
    """Timestamped line for the validation logs returned to callers."""
    return f"[{utc_now_iso()}] {message}"


def ok(message: str) -> str:
    return log_line(f"✓ {message}")


def fail(message: str) -> str:
    return log_line(f"✗ {message}")


def add_years(moment: datetime, years: int) -> datetime:
    """Same day/month `years` later; Feb 29 falls back to Feb 28."""
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        return moment.replace(year=moment.year + years, day=28)

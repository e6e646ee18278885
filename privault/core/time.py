"""
privault/core/time.py

Timestamps for commitments and journal entries.

Wire Format: YYYY-MM-DDTHH:MM:SS.mmmZ  (UTC, milliseconds, Z suffix)
"""

import re
from datetime import datetime, timezone
from typing import Optional

_WIRE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")


def ledger_timestamp(now: Optional[datetime] = None) -> str:
    """Render ``now`` (default: current UTC time) in wire format."""
    moment = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_ledger_timestamp(value: str) -> datetime:
    """Inverse of ledger_timestamp(). Raises ValueError on any other format."""
    if not _WIRE_RE.match(value):
        raise ValueError(f"Not a ledger timestamp: {value!r}")
    return datetime.strptime(value, "%Y-%m-%dT%H:%M:%S.%fZ").replace(tzinfo=timezone.utc)

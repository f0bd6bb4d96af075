"""Run-scoped identifiers for remote resource names and storage keys."""

import os
import re
import secrets
from datetime import datetime, timezone
from typing import Optional

# Forecast resource names: letter first, then letters, digits and underscores
_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")
MAX_NAME_LENGTH = 63


def new_run_id(now: Optional[datetime] = None) -> str:
    """Per-invocation unique run id, safe for rapid or concurrent runs.

    The UTC timestamp keeps ids sortable; the pid and random token keep two
    runs started in the same second apart.
    """
    now = now or datetime.now(timezone.utc)
    ts = now.strftime("%Y%m%dT%H%M%S")
    return f"r{ts}_{os.getpid() % 10000:04d}{secrets.token_hex(3)}"


def resource_name(prefix: str, run_id: str) -> str:
    """Build a run-scoped remote resource name such as ``predictor_<run>``."""
    name = f"{prefix}_{run_id}"
    if len(name) > MAX_NAME_LENGTH or not _NAME_PATTERN.match(name):
        raise ValueError(f"Invalid resource name: {name}")
    return name

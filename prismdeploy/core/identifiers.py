"""Deployment identifiers."""

from __future__ import annotations

import re
import secrets
import time
from datetime import datetime, timezone

_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"

DEPLOYMENT_ID_PATTERN = re.compile(r"^deploy_\d+_[0-9a-z]{6}$")

DRY_RUN_ID = "dry-run"


def generate_deployment_id(now_ms: int | None = None) -> str:
    """Return ``deploy_<epoch-ms>_<6 random base36 chars>``."""
    ts = now_ms if now_ms is not None else int(time.time() * 1000)
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(6))
    return f"deploy_{ts}_{suffix}"


def is_deployment_id(value: str) -> bool:
    return bool(DEPLOYMENT_ID_PATTERN.match(value))


def iso_timestamp(moment: datetime | None = None) -> str:
    """UTC ISO-8601 with millisecond precision and a ``Z`` suffix."""
    moment = moment or datetime.now(timezone.utc)
    text = moment.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")

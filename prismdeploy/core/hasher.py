"""Hashing helpers for asset digests, SRI strings, and build identifiers.

Asset digests are SHA-384 (matching Subresource Integrity); the build hash
is a short SHA-256 over the per-asset digests in canonical order.
"""

from __future__ import annotations

import base64
import hashlib
import json
from collections.abc import Mapping
from typing import Any


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes: sorted keys, compact separators, UTF-8."""
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def sha384_hex(data: bytes) -> str:
    """Return the SHA-384 hex digest of raw bytes."""
    return hashlib.sha384(data).hexdigest()


def sri_from_hex(sha384_digest: str) -> str:
    """Convert a SHA-384 hex digest to ``sha384-<base64>`` form."""
    raw = bytes.fromhex(sha384_digest)
    return f"sha384-{base64.b64encode(raw).decode('ascii')}"


def sri(data: bytes) -> str:
    """Subresource Integrity string for raw bytes."""
    return sri_from_hex(sha384_hex(data))


def compute_build_hash(digests: Mapping[str, str]) -> str:
    """SHA-256 over the concatenation of per-file digests, 8 hex chars.

    Digests are concatenated in sorted filename order so the result only
    depends on file names and contents, never on enumeration order.
    """
    joined = "".join(digests[name] for name in sorted(digests))
    return sha256_hex(joined.encode("ascii"))[:8]


def content_address(obj: Any) -> str:
    """Content-address a JSON-serializable object as ``sha256:<hex>``."""
    return f"sha256:{sha256_hex(canonical_json_bytes(obj))}"

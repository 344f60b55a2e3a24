# src/cache/hashing.py — v1
"""Hashes stored in place of raw consent strings and publisher data.

Only equality matters: a stored hash is compared with the hash of the
current value to detect change. Empty inputs hash to None so that
"never stored" and "nothing to store" compare equal.
"""

from __future__ import annotations

import hashlib
import json

from id5resolver.core.models import ConsentSnapshot


def hash_consent(snapshot: ConsentSnapshot | None) -> str | None:
    """SHA-256 over the applicability flag and consent string."""
    if snapshot is None or snapshot.is_empty:
        return None
    canonical = json.dumps(
        {
            "gdpr_applies": snapshot.gdpr_applies,
            "consent_string": snapshot.consent_string or "",
        },
        sort_keys=True,
    )
    return _sha256(canonical)


def hash_publisher_data(pd: str | None) -> str | None:
    """SHA-256 over the raw publisher data string."""
    if not pd:
        return None
    return _sha256(pd)


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()

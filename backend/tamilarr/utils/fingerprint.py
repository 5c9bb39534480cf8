"""
Fingerprint Utility Module

Helpers for torrent infohashes (fingerprints) as used throughout Tamilarr.

A fingerprint is the 40-character hexadecimal BitTorrent v1 infohash in
canonical lower case.

Functions:
    normalize_fingerprint(value: str) -> Optional[str]
        Lower-case and validate a fingerprint
"""

import re
from typing import Optional

FINGERPRINT_PATTERN = re.compile(r'^[0-9a-f]{40}$')


def normalize_fingerprint(value: str) -> Optional[str]:
    """
    Lower-case and validate a fingerprint.

    Returns:
        Canonical fingerprint, or None if ``value`` is not 40 hex characters
    """
    if not value or not isinstance(value, str):
        return None
    candidate = value.strip().lower()
    return candidate if FINGERPRINT_PATTERN.match(candidate) else None

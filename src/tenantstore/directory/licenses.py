"""License key generation and normalization."""

from __future__ import annotations

import re
import secrets

LICENSE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
"""Upper-case letters and digits without the easily confused I, O, 0 and 1."""

LICENSE_GROUPS = 4
LICENSE_GROUP_SIZE = 4

_LICENSE_PATTERN = re.compile(
    rf"^[{LICENSE_ALPHABET}]{{{LICENSE_GROUP_SIZE}}}"
    rf"(?:-[{LICENSE_ALPHABET}]{{{LICENSE_GROUP_SIZE}}}){{{LICENSE_GROUPS - 1}}}$"
)


def generate_license_key() -> str:
    """
    Generate a random XXXX-XXXX-XXXX-XXXX license key.

    Example:
        >>> key = generate_license_key()
        >>> len(key)
        19
    """
    groups = [
        "".join(secrets.choice(LICENSE_ALPHABET) for _ in range(LICENSE_GROUP_SIZE))
        for _ in range(LICENSE_GROUPS)
    ]
    return "-".join(groups)


def normalize_license_key(value: str) -> str:
    """Upper-case and trim a key as typed by a user."""
    return value.strip().upper()


def is_well_formed(value: str) -> bool:
    return bool(_LICENSE_PATTERN.match(normalize_license_key(value)))


__all__ = [
    "LICENSE_ALPHABET",
    "generate_license_key",
    "normalize_license_key",
    "is_well_formed",
]

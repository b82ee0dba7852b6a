"""
Ephemeral author identities.

Identities are generated locally, never leave the process except as the
author of a posted document, and are never persisted.
"""

import base64
import re
import secrets

from shared.errors import ValidationError

from ..domain import AuthorIdentity


SHORT_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9]{3}$")
KEY_BYTES = 32


def _b32(raw: bytes) -> str:
    # Lowercase unpadded base32 with a leading "b" multibase marker
    return "b" + base64.b32encode(raw).decode("ascii").rstrip("=").lower()


def generate_ephemeral_author_identity(seed_label: str) -> AuthorIdentity:
    """Create a fresh random author identity labelled ``seed_label``."""
    if not SHORT_NAME_PATTERN.match(seed_label or ""):
        raise ValidationError(
            "Author short name must be 4 characters: a lowercase letter followed by letters or digits",
            details={"seed_label": seed_label},
        )

    public_key = secrets.token_bytes(KEY_BYTES)
    secret = secrets.token_bytes(KEY_BYTES)
    return AuthorIdentity(
        address=f"@{seed_label}.{_b32(public_key)}",
        secret=_b32(secret),
        short_name=seed_label,
    )

"""Ticket ID generation (``st_`` + 6 base62 characters)."""

import secrets
import string
from typing import Iterable

ID_PREFIX = "st_"
ID_LENGTH = 6
BASE62_CHARS = string.ascii_lowercase + string.ascii_uppercase + string.digits

MAX_ID_ATTEMPTS = 100


def random_ticket_id() -> str:
    return ID_PREFIX + "".join(secrets.choice(BASE62_CHARS) for _ in range(ID_LENGTH))


def generate_ticket_id(existing_ids: Iterable[str]) -> str:
    """Create a ticket ID that does not collide with ``existing_ids``.

    Raises:
        RuntimeError: If no unique ID was found after 100 attempts
    """
    existing = set(existing_ids)
    for _ in range(MAX_ID_ATTEMPTS):
        candidate = random_ticket_id()
        if candidate not in existing:
            return candidate
    raise RuntimeError(f"failed to generate unique ID after {MAX_ID_ATTEMPTS} attempts")


def looks_like_ticket_id(value: str) -> bool:
    """True for strings shaped like ``st_xxxxxx``."""
    if not value.startswith(ID_PREFIX) or len(value) != len(ID_PREFIX) + ID_LENGTH:
        return False
    return all(c in BASE62_CHARS for c in value[len(ID_PREFIX):])

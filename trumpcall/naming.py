"""Room code and identity generation."""

import secrets
import string
import uuid

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_room_code(length: int = 6) -> str:
    """
    Random shareable room code drawn from [A-Z0-9].

    Uniqueness is not checked here; the caller looks for collisions.
    """
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(length))


def generate_identity() -> str:
    return uuid.uuid4().hex

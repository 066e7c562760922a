"""Identity - Per-installation user identifier.

The id is generated once, kept in the local cache and reused for every
remote store operation. It is opaque: nothing is derived from it.
"""

import logging
import re
import secrets
import uuid

from .local_cache import USER_ID_KEY, LocalCache


logger = logging.getLogger(__name__)

GUEST_SESSION_PREFIX = "guest_session_"

_USER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_\-]{8,64}$")


def generate_user_id() -> str:
    """Generate a new random user id."""
    return str(uuid.uuid4())


def generate_session_id() -> str:
    """Temporary id for a session whose id cannot be persisted."""
    return f"{GUEST_SESSION_PREFIX}{secrets.token_hex(4)}"


def validate_user_id_format(user_id: str | None) -> bool:
    """Check that a stored id is usable as a Firestore document id.

    Args:
        user_id: Value read from the cache

    Returns:
        True if format is valid
    """
    if not user_id or not isinstance(user_id, str):
        return False
    return bool(_USER_ID_PATTERN.match(user_id))


def get_or_create_user_id(cache: LocalCache) -> str:
    """Return this installation's user id, creating it on first use.

    Args:
        cache: Local cache holding the id under ``nutri_user_id``

    Returns:
        The persisted id, or a guest session id when it cannot be stored
    """
    stored = cache.get(USER_ID_KEY)
    if validate_user_id_format(stored):
        return stored
    if stored is not None:
        logger.warning("Ignoring malformed stored user id")

    user_id = generate_user_id()
    if cache.set(USER_ID_KEY, user_id):
        logger.info("Created user id: %s", user_id[:8])
        return user_id

    logger.warning("Local cache unavailable, using temporary session id")
    return generate_session_id()

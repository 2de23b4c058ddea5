"""
Session token generation.

Tokens are 32 bytes from the OS secure random source, hex encoded
(64 characters). They are the only key into the session store.
"""

import logging
import secrets

from workshop.core.errors import TokenGenerationError

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


def generate_token() -> str:
    """Generate an unguessable session token."""
    try:
        return secrets.token_hex(TOKEN_BYTES)
    except (OSError, NotImplementedError) as e:
        logger.critical("Secure random source unavailable: %s", e)
        raise TokenGenerationError(str(e)) from e


def is_well_formed(token: str) -> bool:
    """Cheap shape check before a store lookup."""
    if len(token) != TOKEN_BYTES * 2:
        return False
    try:
        bytes.fromhex(token)
    except ValueError:
        return False
    return True

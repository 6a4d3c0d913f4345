"""Ownership token generation.

A token is written into a lock or mutex key on acquisition; a later
release only deletes the key while it still holds that exact token.
Tokens are 24 random bytes, base64 encoded (32 characters, 192 bits of
entropy), so two acquisitions never share one.
"""

import base64
import secrets

_TOKEN_BYTES = 24


def generate_token(nbytes: int = _TOKEN_BYTES) -> str:
    """Generate a random ownership token.

    Args:
        nbytes: Number of random bytes before encoding.

    Returns:
        Base64 text, safe to store as a Redis string value.
    """
    return base64.b64encode(secrets.token_bytes(nbytes)).decode("ascii")

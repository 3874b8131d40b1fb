"""
Random token generation for invitations and manifest state.
"""

import base64
import secrets

# Number of random bytes behind every invitation token.
INVITATION_TOKEN_BYTES = 32
STATE_TOKEN_BYTES = 32


def generate_invitation_token() -> str:
    """Generate a URL-safe, unpadded base64 token over 32 random bytes."""
    raw = secrets.token_bytes(INVITATION_TOKEN_BYTES)
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def decode_token(token: str) -> bytes:
    """Decode an unpadded URL-safe base64 token back to its raw bytes."""
    padding = "=" * (-len(token) % 4)
    return base64.urlsafe_b64decode(token + padding)


def generate_state_token() -> str:
    """Generate a manifest state correlator."""
    return secrets.token_urlsafe(STATE_TOKEN_BYTES)

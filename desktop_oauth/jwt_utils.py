"""
JWT payload decoding for claims and expiry lookup
"""
import base64
import binascii
import json
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def decode_jwt(token: str) -> Optional[Dict[str, Any]]:
    """
    Decode JWT payload without verification.

    Note: This only decodes the payload, does not verify signature.
    The token was received directly from the token endpoint over TLS,
    so the payload is only read for display and expiry hints.

    Args:
        token: JWT string

    Returns:
        Decoded JWT payload as dictionary, or None if the token is not a JWT
    """
    # JWT structure: header.payload.signature
    parts = token.split(".")
    if len(parts) != 3:
        logger.debug(f"Not a JWT: expected 3 parts, got {len(parts)}")
        return None

    payload = parts[1]

    # Add padding if needed (JWT uses base64url without padding)
    payload += "=" * (-len(payload) % 4)

    try:
        decoded = json.loads(base64.urlsafe_b64decode(payload).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        logger.debug(f"Error decoding JWT payload: {e}")
        return None

    if not isinstance(decoded, dict):
        logger.debug("JWT payload is not a JSON object")
        return None
    return decoded


def get_expiry(token: str) -> Optional[float]:
    """
    Get the ``exp`` claim of a JWT.

    Args:
        token: JWT string

    Returns:
        Expiry as a POSIX timestamp, or None if absent
    """
    payload = decode_jwt(token)
    if not payload:
        return None

    exp = payload.get("exp")
    if isinstance(exp, (int, float)) and not isinstance(exp, bool):
        return float(exp)
    return None

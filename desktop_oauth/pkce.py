"""PKCE (Proof Key for Code Exchange) generation, RFC 7636"""

import base64
import hashlib
import secrets
from typing import NamedTuple

from settings import CODE_CHALLENGE_METHOD


class PKCEPair(NamedTuple):
    """PKCE code verifier and challenge pair"""
    verifier: str
    challenge: str

    @property
    def method(self) -> str:
        return CODE_CHALLENGE_METHOD


def compute_challenge(verifier: str) -> str:
    """SHA-256 of the verifier, base64url encoded without padding"""
    digest = hashlib.sha256(verifier.encode('ascii')).digest()
    return base64.urlsafe_b64encode(digest).decode('ascii').rstrip('=')


def generate_pkce() -> PKCEPair:
    """
    Generate PKCE code verifier and challenge.

    RFC 7636 PKCE standard:
    - Verifier: 43-128 characters, base64url encoded (64 bytes -> 86 chars)
    - Challenge: SHA-256 hash of verifier, base64url encoded

    Returns:
        PKCEPair: Tuple of (verifier, challenge)
    """
    verifier = secrets.token_urlsafe(64)
    return PKCEPair(verifier=verifier, challenge=compute_challenge(verifier))

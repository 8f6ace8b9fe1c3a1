"""In-process token cache"""

import logging
import threading
from typing import Any, Dict, Optional

from settings import TOKEN_EXPIRY_LEEWAY
from .models import AccessToken, Claims, TokenSet


logger = logging.getLogger(__name__)


class TokenStore:
    """Holds the tokens of the current session in memory

    Tokens are never written to disk; a new process starts signed out.
    All methods are thread-safe.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._access_token: Optional[AccessToken] = None
        self._refresh_token: Optional[str] = None
        self._claims: Optional[Claims] = None

    def save(self, token_set: TokenSet) -> None:
        """Replace the cached tokens

        Args:
            token_set: Tokens from an exchange or refresh
        """
        with self._lock:
            self._access_token = token_set.access_token
            self._claims = token_set.access_token.claims
            if token_set.refresh_token:
                self._refresh_token = token_set.refresh_token
        logger.debug("Cached new access token")

    def get_access_token(self) -> Optional[AccessToken]:
        with self._lock:
            return self._access_token

    def get_claims(self) -> Optional[Claims]:
        """Claims of the last issued token, kept until the session is cleared"""
        with self._lock:
            return self._claims

    def get_refresh_token(self) -> Optional[str]:
        with self._lock:
            return self._refresh_token

    def has_session(self) -> bool:
        """Check if any credential of a session is cached"""
        with self._lock:
            return self._access_token is not None or self._refresh_token is not None

    def clear_access_token(self) -> None:
        """Drop the cached access token but keep the refresh credential"""
        with self._lock:
            self._access_token = None
        logger.debug("Cleared cached access token")

    def clear(self) -> None:
        """Drop all cached tokens"""
        with self._lock:
            self._access_token = None
            self._refresh_token = None
            self._claims = None
        logger.debug("Cleared all cached tokens")

    def get_status(self, leeway: float = TOKEN_EXPIRY_LEEWAY) -> Dict[str, Any]:
        """Get token status information

        Returns:
            Dictionary with status information
        """
        with self._lock:
            token = self._access_token
            has_refresh = self._refresh_token is not None

        if token is None:
            return {
                "has_tokens": has_refresh,
                "is_expired": True,
                "email": None,
                "plan": None,
                "expires_at": None,
                "time_until_expiry": None,
            }

        remaining = token.expires_in()
        if remaining > 0:
            hours = int(remaining // 3600)
            minutes = int((remaining % 3600) // 60)
            time_until_expiry = f"{hours}h {minutes}m"
        else:
            time_until_expiry = "expired"

        return {
            "has_tokens": True,
            "is_expired": token.is_expired(leeway),
            "email": token.claims.email,
            "plan": token.claims.plan,
            "expires_at": token.expires_at.isoformat(),
            "time_until_expiry": time_until_expiry,
        }

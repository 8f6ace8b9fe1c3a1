"""Data models for the desktop OAuth flow"""

import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .pkce import PKCEPair


class AuthenticationStatus(str, Enum):
    """Sign-in state of the OAuth client; exactly one holds at any time"""
    SIGNED_OUT = "signed_out"
    AUTHENTICATION_IN_PROGRESS = "authentication_in_progress"
    SIGNED_IN = "signed_in"


@dataclass(frozen=True)
class OAuthURLInfo:
    """Everything produced for one login attempt

    Attributes:
        authorization_url: URL to open in the browser
        callback_url: Loopback redirect URI the provider sends the user back to
        pkce: PKCE pair whose verifier is redeemed in the token exchange
        state: Random CSRF token echoed back by the provider
    """
    authorization_url: str
    callback_url: str
    pkce: PKCEPair = field(repr=False)
    state: str = field(repr=False)


@dataclass(frozen=True)
class CallbackResult:
    """Query parameters of the browser redirect"""
    code: Optional[str] = None
    state: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class Claims:
    """User attributes issued with the token

    Attributes:
        email: Account e-mail address
        plan: Subscription plan of the account
        raw: All claims as received
    """
    email: Optional[str] = None
    plan: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Claims":
        email = data.get("email")
        plan = data.get("plan")
        return cls(
            email=str(email) if email is not None else None,
            plan=str(plan) if plan is not None else None,
            raw=dict(data),
        )

    def is_empty(self) -> bool:
        return self.email is None and self.plan is None and not self.raw


@dataclass(frozen=True)
class AccessToken:
    """Bearer token for the subscription API"""
    token_value: str = field(repr=False)
    expires_at: datetime.datetime
    claims: Claims = field(default_factory=Claims)

    def is_expired(self, leeway: float = 0) -> bool:
        """Check if the token is expired or expires within ``leeway`` seconds"""
        now = datetime.datetime.now(datetime.timezone.utc)
        return now >= self.expires_at - datetime.timedelta(seconds=leeway)

    def expires_in(self) -> float:
        """Seconds until expiry (negative once expired)"""
        now = datetime.datetime.now(datetime.timezone.utc)
        return (self.expires_at - now).total_seconds()


@dataclass(frozen=True)
class TokenSet:
    """Token endpoint result: access token plus optional refresh credential"""
    access_token: AccessToken
    refresh_token: Optional[str] = field(default=None, repr=False)

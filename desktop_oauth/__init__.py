"""Desktop OAuth 2.0 sign-in: Authorization Code flow with PKCE and a loopback redirect"""

from .authorization import build_authorization_url, create_state
from .background import BackgroundRunner
from .callback_server import CallbackServer
from .client import OAuthClient
from .exceptions import (
    AuthenticationError,
    AuthenticationInProgressError,
    BindError,
    BrowserOpenError,
    CallbackTimeoutError,
    NotConfiguredError,
    ProviderError,
    RefreshError,
    RequestAlreadyUsedError,
    StateMismatchError,
    TokenExchangeError,
)
from .models import (
    AccessToken,
    AuthenticationStatus,
    CallbackResult,
    Claims,
    OAuthURLInfo,
    TokenSet,
)
from .pkce import PKCEPair, generate_pkce
from .token_exchange import exchange_code_for_tokens, refresh_access_token
from .token_store import TokenStore

__all__ = [
    "OAuthClient",
    "BackgroundRunner",
    "CallbackServer",
    "TokenStore",
    "AccessToken",
    "AuthenticationStatus",
    "CallbackResult",
    "Claims",
    "OAuthURLInfo",
    "PKCEPair",
    "TokenSet",
    "build_authorization_url",
    "create_state",
    "generate_pkce",
    "exchange_code_for_tokens",
    "refresh_access_token",
    "AuthenticationError",
    "AuthenticationInProgressError",
    "BindError",
    "BrowserOpenError",
    "CallbackTimeoutError",
    "NotConfiguredError",
    "ProviderError",
    "RefreshError",
    "RequestAlreadyUsedError",
    "StateMismatchError",
    "TokenExchangeError",
]

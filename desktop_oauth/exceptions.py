"""Exception hierarchy for the OAuth sign-in flow.

Every failure that crosses the package boundary is one of these types;
raw transport errors from httpx or aiohttp are wrapped before they leave.
Each class carries a ``kind`` identifier and a ``hint`` a front end can
show next to the message (retry, check the network, fix configuration).

Subclass hierarchy::

    AuthenticationError
    +-- NotConfiguredError
    +-- BindError
    +-- CallbackTimeoutError
    +-- StateMismatchError
    +-- ProviderError
    +-- TokenExchangeError
    +-- RefreshError
    +-- BrowserOpenError
    +-- AuthenticationInProgressError
    +-- RequestAlreadyUsedError

All of them end the current attempt; none of them leaves the client in
``AUTHENTICATION_IN_PROGRESS``.
"""

from typing import Optional


class AuthenticationError(Exception):
    """Base exception for all authentication failures.

    Args:
        message: Human-readable error description.
    """

    kind: str = "authentication_error"
    hint: str = "Please try to sign in again."

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotConfiguredError(AuthenticationError):
    """Raised when a sign-in is requested but no OAuth provider is configured."""

    kind = "not_configured"
    hint = "Configure the OAuth provider (OAUTH_* settings or oauth.json)."


class BindError(AuthenticationError):
    """Raised when the loopback callback server cannot bind a local port."""

    kind = "bind_error"
    hint = "Close other sign-in windows and try again."


class CallbackTimeoutError(AuthenticationError):
    """Raised when no browser redirect arrives before the timeout elapses."""

    kind = "timeout"
    hint = "Complete the login in your browser, then try again."


class StateMismatchError(AuthenticationError):
    """Raised when the redirect carries a state that was not issued for this attempt.

    The message never says whether the response was forged or merely stale.
    """

    kind = "state_mismatch"
    hint = "Start a new sign-in from the application."


class ProviderError(AuthenticationError):
    """Raised when the identity provider redirects back with an ``error`` parameter.

    Args:
        error: The ``error`` code sent by the provider (e.g. ``access_denied``).
        error_description: Optional ``error_description`` sent by the provider.
    """

    kind = "provider_error"
    hint = "Authorization was not granted. Try again and approve the request."

    def __init__(self, error: str, error_description: Optional[str] = None):
        message = f"Authorization failed: {error}"
        if error_description:
            message += f" - {error_description}"
        super().__init__(message)
        self.error = error
        self.error_description = error_description


class TokenExchangeError(AuthenticationError):
    """Raised when the token endpoint rejects the code or returns an unusable body.

    Args:
        message: Human-readable error description.
        status_code: HTTP status of the token endpoint response, if one was received.
    """

    kind = "token_exchange_failed"
    hint = "Check your network connection and try again."

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RefreshError(TokenExchangeError):
    """Raised when the refresh token is rejected or cannot be redeemed."""

    kind = "refresh_failed"
    hint = "Your session has ended. Please sign in again."


class BrowserOpenError(AuthenticationError):
    """Raised when the supplied browser opener fails to open the authorization URL."""

    kind = "browser_open_failed"
    hint = "Open the authorization URL in your browser manually."


class AuthenticationInProgressError(AuthenticationError):
    """Raised when a sign-in is started while another one is still running."""

    kind = "in_progress"
    hint = "Finish or cancel the running sign-in first."


class RequestAlreadyUsedError(AuthenticationError):
    """Raised when a prepared authorization request is passed to a second sign-in.

    The state and PKCE verifier of a request belong to exactly one attempt.
    """

    kind = "request_used"
    hint = "Prepare a new sign-in request and try again."

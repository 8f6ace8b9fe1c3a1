"""
OAuth authorization request construction with PKCE
"""
import secrets
from urllib.parse import quote, urlencode

from config.loader import OAuthConfig
from settings import AUTH_PROMPT
from .pkce import PKCEPair


def create_state() -> str:
    """
    Generate random state parameter for CSRF protection.

    Returns:
        str: 32-byte random state string
    """
    return secrets.token_urlsafe(32)


def build_authorization_url(
    config: OAuthConfig,
    redirect_uri: str,
    pkce: PKCEPair,
    state: str,
) -> str:
    """
    Build the provider authorization URL.

    Every value is percent-encoded, including ``/``, ``:`` and spaces
    (``%20``), so the redirect URI and scope survive any parser.

    Args:
        config: Provider configuration
        redirect_uri: Loopback callback URL
        pkce: PKCE pair for this attempt
        state: CSRF state for this attempt

    Returns:
        str: Full authorization URL
    """
    params = {
        "response_type": "code",
        "prompt": AUTH_PROMPT,
        "code_challenge": pkce.challenge,
        "code_challenge_method": pkce.method,
        "client_id": config.client_id,
        "redirect_uri": redirect_uri,
        "scope": config.auth_scope,
        "state": state,
    }

    base = config.authorization_url
    separator = "&" if "?" in base else "?"
    return f"{base}{separator}{urlencode(params, quote_via=quote)}"

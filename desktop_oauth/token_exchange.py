"""OAuth token exchange and refresh against the provider token endpoint"""

import datetime
import logging
import math
from typing import Any, Dict, Optional, Type

import httpx

from config.loader import OAuthConfig
from settings import DEFAULT_EXPIRES_IN, HTTP_TIMEOUT
from .exceptions import RefreshError, TokenExchangeError
from .jwt_utils import decode_jwt, get_expiry
from .models import AccessToken, Claims, TokenSet


logger = logging.getLogger(__name__)


def _parse_claims(payload: Dict[str, Any], access_token: str) -> Claims:
    """Find the user claims in a token response

    Looks at an explicit ``claims`` object first, then top-level
    ``email``/``plan`` fields, then the ID token and access token payloads.
    """
    claims = payload.get("claims")
    if isinstance(claims, dict):
        return Claims.from_dict(claims)

    if "email" in payload or "plan" in payload:
        return Claims.from_dict({k: payload[k] for k in ("email", "plan") if k in payload})

    for token in (payload.get("id_token"), access_token):
        if isinstance(token, str):
            decoded = decode_jwt(token)
            if decoded:
                return Claims.from_dict(decoded)

    return Claims()


def _parse_expiry(payload: Dict[str, Any], access_token: str) -> datetime.datetime:
    now = datetime.datetime.now(datetime.timezone.utc)

    expires_in = payload.get("expires_in")
    if expires_in is not None:
        try:
            seconds = float(expires_in)
            if not math.isfinite(seconds):
                raise ValueError("not a finite number")
            return now + datetime.timedelta(seconds=seconds)
        except (TypeError, ValueError, OverflowError):
            logger.warning(f"Ignoring invalid expires_in value: {expires_in!r}")

    exp = get_expiry(access_token)
    if exp is not None:
        try:
            return datetime.datetime.fromtimestamp(exp, datetime.timezone.utc)
        except (OverflowError, OSError, ValueError):
            logger.warning(f"Ignoring invalid exp claim: {exp!r}")

    return now + datetime.timedelta(seconds=DEFAULT_EXPIRES_IN)


def parse_token_response(
    payload: Any,
    fallback_refresh_token: Optional[str] = None,
    fallback_claims: Optional[Claims] = None,
) -> TokenSet:
    """
    Build a TokenSet from a token endpoint JSON body.

    Args:
        payload: Decoded JSON body
        fallback_refresh_token: Refresh token to keep if the response has none
        fallback_claims: Claims to keep if the response carries none

    Returns:
        TokenSet

    Raises:
        ValueError: If the body has no usable access token
    """
    if not isinstance(payload, dict):
        raise ValueError("Token response is not a JSON object")

    access_token = payload.get("access_token")
    if not isinstance(access_token, str) or not access_token:
        raise ValueError("Token response missing 'access_token' field")

    claims = _parse_claims(payload, access_token)
    if claims.is_empty() and fallback_claims is not None:
        claims = fallback_claims

    return TokenSet(
        access_token=AccessToken(
            token_value=access_token,
            expires_at=_parse_expiry(payload, access_token),
            claims=claims,
        ),
        # May not return new refresh token
        refresh_token=payload.get("refresh_token") or fallback_refresh_token,
    )


async def _post_token_request(
    url: str,
    data: Dict[str, str],
    timeout: float,
    error_class: Type[TokenExchangeError],
    action: str,
) -> Dict[str, Any]:
    """POST a form to the token endpoint and return the JSON body

    Raises:
        error_class: On transport errors, non-2xx status or a non-JSON body
    """
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            response = await client.post(
                url,
                data=data,
                headers={"Accept": "application/json"},
            )
    except httpx.TimeoutException as e:
        logger.error(f"{action} timed out after {timeout} seconds: {e}")
        raise error_class(f"{action} timed out") from e
    except httpx.HTTPError as e:
        logger.error(f"{action} request failed: {e}")
        raise error_class(f"{action} request failed: {e}") from e

    logger.debug(f"{action} response status: {response.status_code}")

    if not response.is_success:
        logger.error(f"{action} failed with status {response.status_code}: {response.text}")
        raise error_class(
            f"{action} failed with status {response.status_code}",
            status_code=response.status_code,
        )

    try:
        return response.json()
    except ValueError as e:
        logger.error(f"Failed to parse {action.lower()} response: {e}")
        raise error_class(
            f"{action} returned an invalid response",
            status_code=response.status_code,
        ) from e


async def exchange_code_for_tokens(
    config: OAuthConfig,
    code: str,
    code_verifier: str,
    redirect_uri: str,
    timeout: float = HTTP_TIMEOUT,
) -> TokenSet:
    """
    Exchange authorization code for access and refresh tokens.

    Args:
        config: Provider configuration
        code: Authorization code from callback
        code_verifier: PKCE code verifier
        redirect_uri: Redirect URI used in the authorization request
        timeout: HTTP timeout in seconds

    Returns:
        TokenSet

    Raises:
        TokenExchangeError: If the exchange fails
    """
    data = {
        "grant_type": "authorization_code",
        "code": code,
        "redirect_uri": redirect_uri,
        "client_id": config.client_id,
        "code_verifier": code_verifier,
    }

    logger.info(f"Exchanging authorization code for tokens at {config.token_url}")
    payload = await _post_token_request(
        config.token_url, data, timeout, TokenExchangeError, "Token exchange"
    )

    try:
        token_set = parse_token_response(payload)
    except ValueError as e:
        logger.error(f"Invalid token exchange response: {e}")
        raise TokenExchangeError(str(e)) from e

    logger.info("Successfully exchanged authorization code for tokens")
    return token_set


async def refresh_access_token(
    config: OAuthConfig,
    refresh_token: str,
    previous_claims: Optional[Claims] = None,
    timeout: float = HTTP_TIMEOUT,
) -> TokenSet:
    """
    Refresh access token using refresh token.

    Args:
        config: Provider configuration
        refresh_token: OAuth refresh token
        previous_claims: Claims to keep if the response carries none
        timeout: HTTP timeout in seconds

    Returns:
        TokenSet

    Raises:
        RefreshError: If the refresh fails
    """
    data = {
        "grant_type": "refresh_token",
        "refresh_token": refresh_token,
        "client_id": config.client_id,
    }

    payload = await _post_token_request(
        config.token_url, data, timeout, RefreshError, "Token refresh"
    )

    try:
        token_set = parse_token_response(
            payload,
            fallback_refresh_token=refresh_token,
            fallback_claims=previous_claims,
        )
    except ValueError as e:
        logger.error(f"Invalid token refresh response: {e}")
        raise RefreshError(str(e)) from e

    logger.info("Access token refreshed successfully")
    return token_set

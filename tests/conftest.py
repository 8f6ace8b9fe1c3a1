"""Shared fixtures for the desktop OAuth tests"""

import pytest
import respx

from config.loader import OAuthConfig
from desktop_oauth import OAuthClient
from tests.helpers import TOKEN_URL, FakeBrowser, FakeTokenEndpoint


@pytest.fixture
def oauth_config():
    return OAuthConfig(
        base_url="https://auth.example.com",
        auth_endpoint="/oauth/authorize",
        token_endpoint="/oauth/token",
        client_id="desktop-client",
        auth_scope="openid email offline_access",
    )


@pytest.fixture
def client(oauth_config):
    return OAuthClient(oauth_config, callback_timeout=5.0)


@pytest.fixture
def token_payload():
    """Successful authorization_code grant response"""
    return {
        "access_token": "access-1",
        "refresh_token": "refresh-1",
        "expires_in": 3600,
        "token_type": "Bearer",
        "claims": {"email": "user@example.com", "plan": "pro"},
    }


@pytest.fixture
def refresh_payload():
    """Successful refresh_token grant response without a new refresh token"""
    return {
        "access_token": "access-2",
        "expires_in": 3600,
        "token_type": "Bearer",
    }


@pytest.fixture
def token_endpoint(token_payload, refresh_payload):
    """Mocked token endpoint; change ``responses`` to alter the answers"""
    endpoint = FakeTokenEndpoint(exchange=token_payload, refresh=refresh_payload)
    with respx.mock(assert_all_called=False) as mock:
        mock.post(TOKEN_URL).mock(side_effect=endpoint.handle)
        yield endpoint


@pytest.fixture
def browser():
    return FakeBrowser()

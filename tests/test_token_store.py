"""Tests for the in-memory token store"""

import datetime

from desktop_oauth.models import AccessToken, Claims, TokenSet
from desktop_oauth.token_store import TokenStore


def make_token(value="access", seconds=3600, email="user@example.com", plan="pro"):
    expires_at = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(seconds=seconds)
    return AccessToken(token_value=value, expires_at=expires_at, claims=Claims(email=email, plan=plan))


class TestTokenStore:
    def test_empty_store(self):
        store = TokenStore()

        assert store.get_access_token() is None
        assert store.get_refresh_token() is None
        assert not store.has_session()
        assert store.get_status()["has_tokens"] is False

    def test_save_and_get(self):
        store = TokenStore()
        token = make_token()
        store.save(TokenSet(access_token=token, refresh_token="refresh"))

        assert store.get_access_token() is token
        assert store.get_refresh_token() == "refresh"
        assert store.get_claims() == Claims(email="user@example.com", plan="pro")
        assert store.has_session()

    def test_save_without_refresh_token_keeps_previous(self):
        store = TokenStore()
        store.save(TokenSet(access_token=make_token("one"), refresh_token="refresh"))
        store.save(TokenSet(access_token=make_token("two")))

        assert store.get_access_token().token_value == "two"
        assert store.get_refresh_token() == "refresh"

    def test_clear_access_token_keeps_refresh_and_claims(self):
        store = TokenStore()
        store.save(TokenSet(access_token=make_token(), refresh_token="refresh"))
        store.clear_access_token()

        assert store.get_access_token() is None
        assert store.get_refresh_token() == "refresh"
        assert store.get_claims().email == "user@example.com"
        assert store.has_session()

    def test_clear(self):
        store = TokenStore()
        store.save(TokenSet(access_token=make_token(), refresh_token="refresh"))
        store.clear()

        assert store.get_access_token() is None
        assert store.get_refresh_token() is None
        assert store.get_claims() is None
        assert not store.has_session()

    def test_status_of_valid_token(self):
        store = TokenStore()
        store.save(TokenSet(access_token=make_token(seconds=2 * 3600 + 600)))
        status = store.get_status()

        assert status["has_tokens"] is True
        assert status["is_expired"] is False
        assert status["email"] == "user@example.com"
        assert status["plan"] == "pro"
        assert status["time_until_expiry"].startswith("2h ")

    def test_status_of_expired_token(self):
        store = TokenStore()
        store.save(TokenSet(access_token=make_token(seconds=-10)))
        status = store.get_status()

        assert status["is_expired"] is True
        assert status["time_until_expiry"] == "expired"

    def test_status_honours_leeway(self):
        store = TokenStore()
        store.save(TokenSet(access_token=make_token(seconds=30)))

        assert store.get_status(leeway=60)["is_expired"] is True
        assert store.get_status(leeway=0)["is_expired"] is False

    def test_token_repr_hides_secrets(self):
        token_set = TokenSet(access_token=make_token("secret-access"), refresh_token="secret-refresh")
        assert "secret" not in repr(token_set)

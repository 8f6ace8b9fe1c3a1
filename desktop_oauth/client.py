"""OAuth client: sign-in state machine, token lifecycle and status notifications"""

import asyncio
import concurrent.futures
import inspect
import logging
import secrets
import threading
from typing import Any, Callable, Dict, List, Optional, Set
from urllib.parse import urlparse

from config.loader import OAuthConfig, get_oauth_config
from settings import (
    CALLBACK_HOST,
    CALLBACK_PATH,
    CALLBACK_TIMEOUT,
    HTTP_TIMEOUT,
    TOKEN_EXPIRY_LEEWAY,
)
from .authorization import build_authorization_url, create_state
from .background import BackgroundRunner
from .callback_server import CallbackServer
from .exceptions import (
    AuthenticationError,
    AuthenticationInProgressError,
    BrowserOpenError,
    NotConfiguredError,
    ProviderError,
    RequestAlreadyUsedError,
    StateMismatchError,
)
from .models import AccessToken, AuthenticationStatus, CallbackResult, OAuthURLInfo, TokenSet
from .pkce import generate_pkce
from .token_exchange import exchange_code_for_tokens, refresh_access_token
from .token_store import TokenStore


logger = logging.getLogger(__name__)

BrowserOpener = Callable[[str], Any]
StatusListener = Callable[[], None]


class OAuthClient:
    """Orchestrates the Authorization Code + PKCE flow for the desktop application

    One instance is created at startup and handed to every consumer. It owns
    the authentication status and the token cache; all of that state is
    guarded by a single re-entrant lock. Status listeners are called while
    that lock is held, on the thread performing the transition, so they see
    transitions in order and must return quickly (typically by posting to
    their UI thread).

    The coroutines of one sign-in attempt must run on one event loop. Hosts
    that must not block their main thread use :meth:`start_sign_in`, which
    runs the flow on the client's background loop.
    """

    def __init__(
        self,
        config: Optional[OAuthConfig] = None,
        *,
        config_provider: Optional[Callable[[], Optional[OAuthConfig]]] = None,
        token_store: Optional[TokenStore] = None,
        callback_timeout: float = CALLBACK_TIMEOUT,
        http_timeout: float = HTTP_TIMEOUT,
        expiry_leeway: float = TOKEN_EXPIRY_LEEWAY,
        callback_host: str = CALLBACK_HOST,
        callback_path: str = CALLBACK_PATH,
        runner: Optional[BackgroundRunner] = None,
    ):
        """
        Initialize the OAuth client.

        Args:
            config: Provider configuration; read via get_oauth_config() if None
            config_provider: Callable returning the configuration (or None)
            token_store: Token cache (creates new if None)
            callback_timeout: Seconds to wait for the browser redirect
            http_timeout: Seconds allowed for token endpoint requests
            expiry_leeway: Seconds before expiry at which a token is refreshed
            callback_host: Interface of the loopback callback server
            callback_path: Path of the loopback callback endpoint
            runner: Background loop for start_* methods (created on demand)
        """
        if config is not None:
            self._config_provider = lambda: config
        else:
            self._config_provider = config_provider or get_oauth_config
        self._token_store = token_store or TokenStore()
        self.callback_timeout = callback_timeout
        self.http_timeout = http_timeout
        self.expiry_leeway = expiry_leeway
        self.callback_host = callback_host
        self.callback_path = callback_path

        self._lock = threading.RLock()
        self._status = AuthenticationStatus.SIGNED_OUT
        self._listeners: List[StatusListener] = []
        self._prepared: Dict[str, CallbackServer] = {}
        # States of requests that an attempt has consumed
        self._used_states: Set[str] = set()
        # Bumped for every attempt / session so late results can be recognised
        self._attempt = 0
        self._attempt_task: Optional[asyncio.Task] = None
        self._attempt_loop: Optional[asyncio.AbstractEventLoop] = None
        self._session = 0
        # Shared by concurrent refreshes, whichever loop they run on
        self._refresh_future: Optional[concurrent.futures.Future] = None

        self._runner = runner
        self._owns_runner = runner is None

    # Configuration

    def get_config(self) -> Optional[OAuthConfig]:
        """Get the provider configuration, or None if OAuth is not configured"""
        return self._config_provider()

    def is_configured(self) -> bool:
        return self.get_config() is not None

    def _require_config(self) -> OAuthConfig:
        config = self.get_config()
        if config is None:
            raise NotConfiguredError("OAuth is not configured")
        return config

    # Status and listeners

    def get_status(self) -> AuthenticationStatus:
        with self._lock:
            return self._status

    def is_authentication_ongoing(self) -> bool:
        return self.get_status() is AuthenticationStatus.AUTHENTICATION_IN_PROGRESS

    def is_authenticated(self) -> bool:
        return self.get_status() is AuthenticationStatus.SIGNED_IN

    def add_status_listener(self, listener: StatusListener) -> None:
        """Register a zero-argument callback invoked on every status transition

        The listener runs on the transitioning thread while the client lock is
        held. It may call back into the client, but must not wait for another
        thread that uses the client (e.g. a blocking hand-off to a UI thread);
        post the update asynchronously instead.
        """
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_status_listener(self, listener: StatusListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _set_status(self, status: AuthenticationStatus) -> None:
        """Transition and notify listeners (caller holds the lock)"""
        if self._status is status:
            return
        logger.info(f"Authentication status: {self._status.value} -> {status.value}")
        self._status = status

        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception(f"Status listener {listener!r} failed")

    # Authorization request

    async def prepare_authorization_request(self) -> OAuthURLInfo:
        """
        Prepare the URLs of a login attempt.

        Starts the loopback callback server, which keeps running until the
        bundle is used by sign_in_with_info() or discarded.

        Returns:
            OAuthURLInfo with authorization URL, callback URL, PKCE pair and state

        Raises:
            NotConfiguredError: If OAuth is not configured
            BindError: If the callback server cannot start
        """
        config = self._require_config()

        server = CallbackServer(host=self.callback_host, path=self.callback_path)
        await server.start()
        try:
            pkce = generate_pkce()
            state = create_state()
            callback_url = server.get_success_endpoint()
            url_info = OAuthURLInfo(
                authorization_url=build_authorization_url(config, callback_url, pkce, state),
                callback_url=callback_url,
                pkce=pkce,
                state=state,
            )
        except BaseException:
            await server.stop()
            raise

        with self._lock:
            self._prepared[state] = server
        logger.debug(f"Prepared authorization request with callback {callback_url}")
        return url_info

    async def discard_authorization_request(self, url_info: OAuthURLInfo) -> None:
        """Stop the callback server of a prepared request that will not be used"""
        with self._lock:
            server = self._prepared.pop(url_info.state, None)
        if server is not None:
            await server.stop()

    async def _claim_server(self, url_info: OAuthURLInfo) -> CallbackServer:
        """Take over the callback server of a prepared request

        A request that was discarded before use gets a new server on the
        port its redirect URI names.
        """
        with self._lock:
            server = self._prepared.pop(url_info.state, None)
        if server is not None and server.is_running:
            return server

        parsed = urlparse(url_info.callback_url)
        logger.info(f"Restarting callback server on port {parsed.port}")
        server = CallbackServer(
            host=parsed.hostname or self.callback_host,
            port=parsed.port or 0,
            path=parsed.path or self.callback_path,
        )
        await server.start()
        return server

    # Sign-in

    async def sign_in(self, browser_opener: BrowserOpener) -> AccessToken:
        """
        Run the complete sign-in flow.

        Args:
            browser_opener: Callable opening a URL in the user's browser;
                may be a coroutine function. A False return value is taken
                as "could not open" and the URL is logged for manual use.

        Returns:
            The issued AccessToken

        Raises:
            AuthenticationError: Any typed failure; the client is SIGNED_OUT afterwards
        """
        return await self._sign_in(browser_opener, None)

    async def sign_in_with_info(self, browser_opener: BrowserOpener, url_info: OAuthURLInfo) -> AccessToken:
        """
        Run the sign-in flow for a request prepared by prepare_authorization_request().

        The PKCE verifier and state of ``url_info`` are reused, not regenerated.
        """
        return await self._sign_in(browser_opener, url_info)

    async def _sign_in(self, browser_opener: BrowserOpener, url_info: Optional[OAuthURLInfo]) -> AccessToken:
        config = self._require_config()
        attempt = self._begin_attempt(url_info)

        try:
            token_set = await self._run_attempt(config, browser_opener, url_info)

            with self._lock:
                if not self._is_current_attempt(attempt):
                    logger.info("Discarding tokens of a cancelled sign-in")
                    raise asyncio.CancelledError()
                self._token_store.clear()
                self._token_store.save(token_set)
                self._session += 1
                self._attempt_task = None
                self._set_status(AuthenticationStatus.SIGNED_IN)
        except asyncio.CancelledError:
            logger.info("Sign-in cancelled")
            self._abort_attempt(attempt)
            raise
        except AuthenticationError as e:
            logger.error(f"Sign-in failed: {e}")
            self._abort_attempt(attempt)
            raise
        except Exception:
            logger.exception("Unexpected error during sign-in")
            self._abort_attempt(attempt)
            raise

        claims = token_set.access_token.claims
        logger.info(f"Signed in as {claims.email or 'unknown user'} (plan: {claims.plan or 'unknown'})")
        return token_set.access_token

    def _begin_attempt(self, url_info: Optional[OAuthURLInfo]) -> int:
        with self._lock:
            if self._status is AuthenticationStatus.AUTHENTICATION_IN_PROGRESS:
                raise AuthenticationInProgressError("A sign-in is already in progress")
            if url_info is not None:
                if url_info.state in self._used_states:
                    raise RequestAlreadyUsedError("This sign-in request has already been used")
                self._used_states.add(url_info.state)
            self._attempt += 1
            self._attempt_task = asyncio.current_task()
            self._attempt_loop = asyncio.get_running_loop()
            self._set_status(AuthenticationStatus.AUTHENTICATION_IN_PROGRESS)
            return self._attempt

    def _is_current_attempt(self, attempt: int) -> bool:
        return (
            self._attempt == attempt
            and self._status is AuthenticationStatus.AUTHENTICATION_IN_PROGRESS
        )

    def _abort_attempt(self, attempt: int) -> None:
        with self._lock:
            if not self._is_current_attempt(attempt):
                return
            self._attempt_task = None
            self._end_session()

    def _end_session(self) -> None:
        """Drop all tokens and go to SIGNED_OUT (caller holds the lock)"""
        self._token_store.clear()
        self._session += 1
        self._set_status(AuthenticationStatus.SIGNED_OUT)

    async def _run_attempt(
        self,
        config: OAuthConfig,
        browser_opener: BrowserOpener,
        url_info: Optional[OAuthURLInfo],
    ) -> TokenSet:
        if url_info is None:
            url_info = await self.prepare_authorization_request()
            with self._lock:
                self._used_states.add(url_info.state)
        server = await self._claim_server(url_info)

        try:
            await self._open_browser(browser_opener, url_info.authorization_url)
            result = await server.wait_for_callback(self.callback_timeout)
        finally:
            await server.stop()

        self._validate_callback(result, url_info)

        return await exchange_code_for_tokens(
            config,
            result.code,
            url_info.pkce.verifier,
            url_info.callback_url,
            timeout=self.http_timeout,
        )

    async def _open_browser(self, browser_opener: BrowserOpener, url: str) -> None:
        try:
            opened = browser_opener(url)
            if inspect.isawaitable(opened):
                opened = await opened
        except Exception as e:
            raise BrowserOpenError(f"Could not open the authorization URL: {e}") from e

        if opened is False:
            logger.warning(f"Could not open browser automatically. Please open this URL manually: {url}")

    @staticmethod
    def _validate_callback(result: CallbackResult, url_info: OAuthURLInfo) -> None:
        if result.is_error:
            raise ProviderError(result.error, result.error_description)

        received = (result.state or "").encode("utf-8")
        if not received or not secrets.compare_digest(received, url_info.state.encode("utf-8")):
            logger.warning("Rejecting authorization response with unexpected state")
            raise StateMismatchError("The authorization response could not be verified")

    def cancel_sign_in(self) -> bool:
        """
        Cancel the running sign-in attempt (callable from any thread).

        Returns:
            True if an attempt was cancelled
        """
        with self._lock:
            task, loop = self._attempt_task, self._attempt_loop
            if (
                self._status is not AuthenticationStatus.AUTHENTICATION_IN_PROGRESS
                or task is None
                or task.done()
            ):
                return False
        loop.call_soon_threadsafe(task.cancel)
        return True

    # Tokens

    def _cached_token(self) -> Optional[AccessToken]:
        with self._lock:
            if self._status is not AuthenticationStatus.SIGNED_IN:
                return None
            token = self._token_store.get_access_token()
            if token is not None and not token.is_expired(self.expiry_leeway):
                return token
            return None

    async def get_api_access_token(self) -> Optional[AccessToken]:
        """
        Get a valid access token, refreshing it if it expired or was cleared.

        Returns:
            AccessToken, or None if not signed in

        Raises:
            RefreshError: If the refresh token was rejected; the session ends
        """
        while True:
            token = self._cached_token()
            if token is not None or not self.is_authenticated():
                return token

            with self._lock:
                pending = self._refresh_future
                owner = pending is None
                if owner:
                    pending = self._refresh_future = concurrent.futures.Future()

            if owner:
                return await self._run_refresh(pending)

            try:
                return await asyncio.shield(asyncio.wrap_future(pending))
            except asyncio.CancelledError:
                if not pending.cancelled():
                    raise
                # The refreshing caller was cancelled; start over

    async def _run_refresh(self, pending: concurrent.futures.Future) -> Optional[AccessToken]:
        """Refresh and publish the outcome to callers waiting on ``pending``"""
        try:
            token = await self._refresh()
        except asyncio.CancelledError:
            pending.cancel()
            raise
        except Exception as e:
            pending.set_exception(e)
            raise
        else:
            pending.set_result(token)
            return token
        finally:
            with self._lock:
                if self._refresh_future is pending:
                    self._refresh_future = None

    async def _refresh(self) -> Optional[AccessToken]:
        with self._lock:
            if self._status is not AuthenticationStatus.SIGNED_IN:
                return None
            # Another caller may have refreshed in the meantime
            token = self._cached_token()
            if token is not None:
                return token

            refresh_token = self._token_store.get_refresh_token()
            previous_claims = self._token_store.get_claims()
            session = self._session
            if not refresh_token:
                logger.warning("Access token expired and no refresh token available")
                self._end_session()
                return None

        logger.info("Access token expired or cleared, refreshing...")
        try:
            token_set = await refresh_access_token(
                self._require_config(),
                refresh_token,
                previous_claims=previous_claims,
                timeout=self.http_timeout,
            )
        except AuthenticationError:
            with self._lock:
                if self._session == session:
                    self._end_session()
            raise

        with self._lock:
            if self._session != session:
                logger.info("Discarding refreshed token of an ended session")
                return None
            self._token_store.save(token_set)
        return token_set.access_token
    def clear_api_access_token(self) -> None:
        """Drop the cached access token; the next get_api_access_token() refreshes it"""
        self._token_store.clear_access_token()

    def get_token_status(self) -> Dict[str, Any]:
        """Token summary for display (see TokenStore.get_status)"""
        return self._token_store.get_status(self.expiry_leeway)

    def sign_out(self) -> None:
        """Sign out, cancelling a running sign-in. Safe to call at any time."""
        self.cancel_sign_in()
        with self._lock:
            # Results of a running attempt are discarded from now on
            self._attempt += 1
            self._attempt_task = None
            self._end_session()
        logger.info("Signed out")

    # Background execution

    @property
    def background(self) -> BackgroundRunner:
        """Background event loop used by the start_* methods"""
        with self._lock:
            if self._runner is None:
                self._runner = BackgroundRunner()
            runner = self._runner
        runner.start()
        return runner

    def start_sign_in(
        self,
        browser_opener: BrowserOpener,
        url_info: Optional[OAuthURLInfo] = None,
    ) -> "concurrent.futures.Future[AccessToken]":
        """
        Start sign_in() / sign_in_with_info() on the background loop.

        ``url_info`` must come from start_prepare_authorization_request().

        Returns:
            Future resolved with the AccessToken or the AuthenticationError

        Raises:
            AuthenticationInProgressError: If a sign-in is already running
        """
        if self.is_authentication_ongoing():
            raise AuthenticationInProgressError("A sign-in is already in progress")
        if url_info is None:
            return self.background.submit(self.sign_in(browser_opener))
        return self.background.submit(self.sign_in_with_info(browser_opener, url_info))

    def start_prepare_authorization_request(self) -> "concurrent.futures.Future[OAuthURLInfo]":
        """Run prepare_authorization_request() on the background loop"""
        return self.background.submit(self.prepare_authorization_request())

    async def close(self) -> None:
        """Cancel the running sign-in and stop all prepared callback servers"""
        self.cancel_sign_in()
        with self._lock:
            servers = list(self._prepared.values())
            self._prepared.clear()
        for server in servers:
            await server.stop()

    def shutdown(self, timeout: float = 5.0) -> None:
        """Close the client on its background loop and stop that loop"""
        with self._lock:
            runner = self._runner
        if runner is None or not runner.is_running:
            return
        try:
            runner.submit(self.close()).result(timeout)
        except concurrent.futures.TimeoutError:
            logger.warning("Timed out closing OAuth client")
        if self._owns_runner:
            runner.stop(timeout)

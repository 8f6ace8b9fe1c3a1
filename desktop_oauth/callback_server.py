"""
Loopback OAuth callback server
"""
import asyncio
import html
import logging
from typing import Optional

from aiohttp import web

from settings import CALLBACK_HOST, CALLBACK_PATH, CALLBACK_TIMEOUT
from .exceptions import BindError, CallbackTimeoutError
from .models import CallbackResult

logger = logging.getLogger(__name__)


SUCCESS_PAGE = """
<html>
    <head><title>Authorization Received</title></head>
    <body style="font-family: sans-serif; text-align: center; padding: 50px;">
        <h1>Authorization Received</h1>
        <p>You can now close this window and return to the application.</p>
        <script>
            setTimeout(function() {
                window.close();
            }, 2000);
        </script>
    </body>
</html>
"""

FAILURE_PAGE = """
<html>
    <head><title>Authorization Failed</title></head>
    <body style="font-family: sans-serif; text-align: center; padding: 50px;">
        <h1>Authorization Failed</h1>
        <p>Error: {error}</p>
        <p>{error_description}</p>
        <p>Please close this window and try again.</p>
    </body>
</html>
"""


class CallbackServer:
    """Local HTTP server receiving exactly one OAuth redirect

    Lifecycle is start -> wait_for_callback -> stop. An instance serves a
    single login attempt and cannot be restarted once stopped.
    """

    def __init__(
        self,
        host: str = CALLBACK_HOST,
        port: int = 0,
        path: str = CALLBACK_PATH,
    ):
        """
        Initialize the callback server.

        Args:
            host: Interface to bind (loopback)
            port: Port to bind; 0 lets the OS pick a free one
            path: Callback path registered as redirect target
        """
        self.host = host
        self.path = path
        self._requested_port = port
        self._port: Optional[int] = None
        self.app = web.Application()
        self.runner: Optional[web.AppRunner] = None
        self._result: Optional["asyncio.Future[CallbackResult]"] = None
        self._stopped = False

        # Register callback route
        self.app.router.add_get(self.path, self._handle_callback)

    @property
    def port(self) -> Optional[int]:
        return self._port

    @property
    def is_running(self) -> bool:
        return self.runner is not None and not self._stopped

    async def _handle_callback(self, request: web.Request) -> web.Response:
        """Handle OAuth redirect request"""
        if self._result is None or self._result.done():
            logger.warning("Ignoring additional request to the callback endpoint")
            return web.Response(
                text="This sign-in request has already been completed.",
                status=409,
            )

        code = request.query.get("code")
        state = request.query.get("state")
        error = request.query.get("error")
        error_description = request.query.get("error_description")

        if error:
            logger.warning(f"Authorization server returned error: {error}")
            self._result.set_result(
                CallbackResult(state=state, error=error, error_description=error_description)
            )
            return web.Response(
                text=FAILURE_PAGE.format(
                    error=html.escape(error),
                    error_description=html.escape(error_description or ""),
                ),
                content_type="text/html",
                status=400,
            )

        if not code:
            logger.warning("Callback request without code or error parameter")
            return web.Response(
                text="Missing code parameter",
                status=400,
            )

        logger.info("Received authorization redirect")
        self._result.set_result(CallbackResult(code=code, state=state))
        return web.Response(text=SUCCESS_PAGE, content_type="text/html")

    async def start(self) -> None:
        """Start the callback server

        Raises:
            BindError: If the port cannot be bound
        """
        if self._stopped:
            raise RuntimeError("Callback server cannot be restarted after stop()")
        if self.runner is not None:
            return

        runner = web.AppRunner(self.app, access_log=None)
        await runner.setup()

        site = web.TCPSite(runner, host=self.host, port=self._requested_port)
        try:
            await site.start()
        except OSError as e:
            await runner.cleanup()
            raise BindError(
                f"Could not start callback server on {self.host}:{self._requested_port}: {e}"
            ) from e

        self.runner = runner
        self._port = runner.addresses[0][1]
        self._result = asyncio.get_running_loop().create_future()
        logger.info(f"OAuth callback server listening on {self.get_success_endpoint()}")

    def get_success_endpoint(self) -> str:
        """
        Get the redirect URI served by this instance.

        Returns:
            URL of the form http://127.0.0.1:<port>/callback
        """
        if self._port is None:
            raise RuntimeError("Callback server has not been started")
        return f"http://{self.host}:{self._port}{self.path}"

    async def wait_for_callback(self, timeout: float = CALLBACK_TIMEOUT) -> CallbackResult:
        """
        Wait for the OAuth redirect.

        Args:
            timeout: Maximum time to wait in seconds (default 5 minutes)

        Returns:
            CallbackResult with either code/state or error details

        Raises:
            CallbackTimeoutError: If no redirect arrives in time
        """
        if self._result is None:
            raise RuntimeError("Callback server has not been started")

        try:
            return await asyncio.wait_for(asyncio.shield(self._result), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"OAuth callback timeout after {timeout} seconds")
            raise CallbackTimeoutError(
                f"No authorization response received within {timeout:g} seconds"
            ) from None

    async def stop(self) -> None:
        """Stop the callback server and release the port"""
        if self._stopped:
            return
        self._stopped = True

        if self.runner:
            await self.runner.cleanup()
            logger.debug(f"OAuth callback server on port {self._port} stopped")

        if self._result is not None and not self._result.done():
            self._result.cancel()

    async def __aenter__(self) -> "CallbackServer":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

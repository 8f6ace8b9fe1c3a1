"""OAuth authentication CLI flow"""

import logging
import webbrowser

from rich.console import Console
from rich.prompt import Confirm

from desktop_oauth import AuthenticationStatus, OAuthClient
from cli.status_display import describe_token, show_token_status, show_urls

logger = logging.getLogger(__name__)

STATUS_MESSAGES = {
    AuthenticationStatus.SIGNED_OUT: "[yellow]Signed out[/yellow]",
    AuthenticationStatus.AUTHENTICATION_IN_PROGRESS: "[cyan]Waiting for the browser login...[/cyan]",
    AuthenticationStatus.SIGNED_IN: "[green][OK][/green] Signed in",
}


class CLIAuthFlow:
    """Handle the OAuth sign-in flow in the terminal"""

    def __init__(self, client: OAuthClient, console: Console):
        self.client = client
        self.console = console
        self.client.add_status_listener(self._on_status_changed)

    def _on_status_changed(self):
        self.console.print(STATUS_MESSAGES[self.client.get_status()])

    def _open_browser(self, url: str) -> bool:
        if webbrowser.open(url):
            self.console.print("[green][OK][/green] Browser opened successfully")
            return True
        self.console.print("[yellow]Could not open browser automatically[/yellow]")
        self.console.print(f"Please open this URL manually:\n{url}", soft_wrap=True)
        return False

    def _print_url(self, url: str) -> bool:
        self.console.print("Open this URL in your browser to sign in:")
        self.console.print(url, soft_wrap=True)
        return False

    async def print_urls(self) -> None:
        """Prepare a login attempt, print its URLs and discard it"""
        url_info = await self.client.prepare_authorization_request()
        try:
            show_urls(url_info, self.console)
        finally:
            await self.client.discard_authorization_request(url_info)

    async def login(
        self,
        show_urls_first: bool = False,
        open_browser: bool = True,
        refresh: bool = False,
    ) -> bool:
        """Run the sign-in flow

        Args:
            show_urls_first: Print the URLs and ask before continuing
            open_browser: Open the system browser (otherwise only print the URL)
            refresh: Force a token refresh after signing in

        Returns:
            True if signed in, False if the user declined
        """
        self.console.print("\n[bold]Step 1:[/bold] Preparing sign-in...")
        url_info = await self.client.prepare_authorization_request()

        if show_urls_first:
            show_urls(url_info, self.console)
            if not Confirm.ask("\nContinue with login?", default=True, console=self.console):
                await self.client.discard_authorization_request(url_info)
                self.console.print("[yellow]Login cancelled[/yellow]")
                return False

        self.console.print("\n[bold]Step 2:[/bold] Complete the login process in your browser")
        opener = self._open_browser if open_browser else self._print_url
        token = await self.client.sign_in_with_info(opener, url_info)
        logger.debug("Sign-in finished")

        self.console.print(f"\n[green]Signed in as[/green] {describe_token(token)}")

        if refresh:
            self.console.print("\n[bold]Step 3:[/bold] Refreshing access token...")
            self.client.clear_api_access_token()
            token = await self.client.get_api_access_token()
            if token is None:
                self.console.print("[red]Session ended during refresh[/red]")
                return False
            self.console.print(f"[green][OK][/green] Refreshed: {describe_token(token)}")

        show_token_status(self.client, self.console)
        return True

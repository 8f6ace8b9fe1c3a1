"""Status display functionality for CLI"""

from rich.table import Table

from desktop_oauth import AccessToken, OAuthClient, OAuthURLInfo


def show_token_status(client: OAuthClient, console):
    """
    Display the signed-in user and token lifetime

    Args:
        client: OAuthClient instance
        console: Rich console for output
    """
    status = client.get_token_status()

    table = Table(title="Token Status Details")
    table.add_column("Property", style="cyan")
    table.add_column("Value")

    table.add_row("Status", client.get_status().value)
    table.add_row("Email", status["email"] or "-")
    table.add_row("Plan", status["plan"] or "-")
    table.add_row("Has Tokens", "Yes" if status["has_tokens"] else "No")

    if status["expires_at"]:
        table.add_row("Expires At", status["expires_at"])
        table.add_row("Time Until Expiry", status["time_until_expiry"])

    console.print(table)


def show_urls(url_info: OAuthURLInfo, console):
    """Print the URLs of a prepared login attempt"""
    console.print("\n[bold]Authorization URL:[/bold]")
    console.print(url_info.authorization_url, soft_wrap=True)
    console.print("\n[bold]Callback URL:[/bold]")
    console.print(url_info.callback_url, soft_wrap=True)


def describe_token(token: AccessToken) -> str:
    """One-line summary of an access token"""
    claims = token.claims
    minutes = max(int(token.expires_in() // 60), 0)
    return f"{claims.email or 'unknown user'} ({claims.plan or 'no plan'}), expires in {minutes}m"

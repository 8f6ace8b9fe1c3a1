"""CLI package for desktop-oauth

This package provides the command-line front end for signing in
through the browser.
"""

from cli.auth_flow import CLIAuthFlow
from cli.main import main

__all__ = [
    "CLIAuthFlow",
    "main",
]

"""Configuration management package for desktop-oauth"""

from .loader import (
    ConfigLoader,
    OAuthConfig,
    OAuthConfigLoader,
    get_config_loader,
    get_oauth_config,
)

__all__ = [
    "ConfigLoader",
    "OAuthConfig",
    "OAuthConfigLoader",
    "get_config_loader",
    "get_oauth_config",
]

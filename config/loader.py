"""Configuration loader for the desktop OAuth client

Loads configuration from multiple sources with the following priority:
1. Environment variables (highest priority)
2. .env file
3. oauth.json provider file (OAuth provider settings only)
4. Hardcoded defaults (lowest priority)
"""

import json
import logging
import os
import threading
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional
from dotenv import load_dotenv

# Set up logger for config loader
logger = logging.getLogger(__name__)


class ConfigLoader:
    """Handles loading configuration from various sources"""

    def __init__(self, env_path: Optional[str] = None):
        """Initialize the config loader

        Args:
            env_path: Optional path to .env file.
                     Defaults to '.env' in the current directory.
        """
        self.env_path = Path(env_path) if env_path else Path(".env")
        self._load_env_file()

    def _load_env_file(self):
        """Load environment variables from .env file if it exists"""
        if self.env_path.exists():
            load_dotenv(dotenv_path=self.env_path)
            logger.debug(f"Loaded environment variables from {self.env_path}")
        else:
            logger.debug(f".env file not found at {self.env_path}, using environment variables and defaults only")

    def get(self, env_var: str, default: Any) -> Any:
        """Look up ``env_var``, typed like ``default``

        Booleans accept true/1/yes. Numbers that fail to parse fall back to
        the default with a warning. A ``~/`` default is expanded.

        Args:
            env_var: Environment variable name to check
            default: Value used when the variable is unset; its type decides parsing

        Returns:
            The parsed environment value or the default
        """
        raw = os.getenv(env_var)
        if raw is None:
            if isinstance(default, str) and default.startswith("~/"):
                return str(Path(default).expanduser())
            return default

        if isinstance(default, bool):
            return raw.strip().lower() in ('true', '1', 'yes')

        for number_type in (int, float):
            if isinstance(default, number_type):
                try:
                    return number_type(raw)
                except ValueError:
                    logger.warning(
                        f"Invalid {number_type.__name__} for {env_var}: {raw!r}, using {default}"
                    )
                    return default

        return raw


# Create a global instance
_config_loader = None

def get_config_loader() -> ConfigLoader:
    """Get or create the global ConfigLoader instance"""
    global _config_loader
    if _config_loader is None:
        _config_loader = ConfigLoader()
    return _config_loader


def _join_url(base_url: str, endpoint: str) -> str:
    if endpoint.startswith(("http://", "https://")):
        return endpoint
    return f"{base_url.rstrip('/')}/{endpoint.lstrip('/')}"


@dataclass(frozen=True)
class OAuthConfig:
    """Identity provider settings

    Attributes:
        base_url: Provider base URL, e.g. https://accounts.example.com
        auth_endpoint: Authorization endpoint path relative to base_url
        token_endpoint: Token endpoint path relative to base_url
        client_id: Public client identifier registered with the provider
        auth_scope: Space-separated scopes to request
    """
    base_url: str
    auth_endpoint: str
    token_endpoint: str
    client_id: str
    auth_scope: str

    @property
    def authorization_url(self) -> str:
        return _join_url(self.base_url, self.auth_endpoint)

    @property
    def token_url(self) -> str:
        return _join_url(self.base_url, self.token_endpoint)


# OAuthConfig field -> environment variable
OAUTH_ENV_VARS: Dict[str, str] = {
    "base_url": "OAUTH_BASE_URL",
    "auth_endpoint": "OAUTH_AUTH_ENDPOINT",
    "token_endpoint": "OAUTH_TOKEN_ENDPOINT",
    "client_id": "OAUTH_CLIENT_ID",
    "auth_scope": "OAUTH_SCOPE",
}


class OAuthConfigLoader:
    """Reads the OAuth provider configuration

    A missing configuration is not an error: :meth:`load` returns ``None``
    and the rest of the application treats OAuth as disabled.
    """

    def __init__(self, config: Optional[ConfigLoader] = None, config_file: Optional[str] = None):
        """Initialize the OAuth config loader

        Args:
            config: ConfigLoader used for environment lookups (global one if None)
            config_file: Path to the JSON provider file.
                        Defaults to OAUTH_CONFIG_FILE or 'oauth.json'.
        """
        self.config = config or get_config_loader()
        self.config_file = Path(config_file or self.config.get("OAUTH_CONFIG_FILE", "oauth.json"))

    def _read_config_file(self) -> Dict[str, str]:
        """Read provider settings from the JSON file, if present"""
        path = self.config_file.expanduser().resolve()

        if not path.exists():
            logger.debug(f"OAuth config file not found: {path}")
            return {}

        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse {path}: {e}")
            return {}
        except IOError as e:
            logger.error(f"Failed to read {path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Invalid OAuth config format in {path}: expected object, got {type(data).__name__}")
            return {}

        values = {}
        for name in OAUTH_ENV_VARS:
            value = data.get(name)
            if isinstance(value, str) and value.strip():
                values[name] = value.strip()
        logger.debug(f"Read OAuth settings {sorted(values)} from {path}")
        return values

    def load(self) -> Optional[OAuthConfig]:
        """Load the provider configuration

        Returns:
            OAuthConfig, or None if OAuth is not (completely) configured
        """
        values = self._read_config_file()

        for name, env_var in OAUTH_ENV_VARS.items():
            value = self.config.get(env_var, None)
            if value and value.strip():
                values[name] = value.strip()

        if not values:
            logger.info("OAuth not configured")
            return None

        missing = [f.name for f in fields(OAuthConfig) if f.name not in values]
        if missing:
            logger.warning(f"Incomplete OAuth configuration, missing: {missing}")
            return None

        return OAuthConfig(**values)


_oauth_config_lock = threading.Lock()
_oauth_config_loaded = False
_oauth_config: Optional[OAuthConfig] = None


def get_oauth_config() -> Optional[OAuthConfig]:
    """Get the process-wide OAuth configuration, reading it on first use

    Returns:
        OAuthConfig, or None if OAuth is not configured
    """
    global _oauth_config, _oauth_config_loaded
    with _oauth_config_lock:
        if not _oauth_config_loaded:
            _oauth_config = OAuthConfigLoader().load()
            _oauth_config_loaded = True
        return _oauth_config

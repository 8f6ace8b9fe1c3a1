from config.loader import get_config_loader

# Get the config loader instance
config = get_config_loader()

# Logging configuration
LOG_LEVEL = config.get("LOG_LEVEL", "info")
DEBUG_LOG_FILE = config.get("DEBUG_LOG_FILE", "oauth_debug.log")

# Loopback callback server (hardcoded - the redirect must stay on the local machine)
CALLBACK_HOST = "127.0.0.1"
CALLBACK_PATH = "/callback"
# How long to wait for the browser redirect before giving up
CALLBACK_TIMEOUT = config.get("OAUTH_CALLBACK_TIMEOUT", 300.0)

# Token endpoint requests
HTTP_TIMEOUT = config.get("OAUTH_HTTP_TIMEOUT", 30.0)

# Access tokens are treated as expired this many seconds before their real expiry
TOKEN_EXPIRY_LEEWAY = config.get("OAUTH_TOKEN_EXPIRY_LEEWAY", 60)
# Lifetime assumed when the token endpoint does not report one
DEFAULT_EXPIRES_IN = 3600

# Authorization request parameters (hardcoded - not user configurable)
AUTH_PROMPT = "login consent"
CODE_CHALLENGE_METHOD = "S256"

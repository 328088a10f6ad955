"""OAuth configuration and token store selection from the environment.

Required environment variables:
- FRESHBOOKS_CLIENT_ID
- FRESHBOOKS_CLIENT_SECRET
- FRESHBOOKS_REDIRECT_URI

Optional:
- FRESHBOOKS_SCOPES (comma-separated)
- FRESHBOOKS_TOKEN_FILE (default: ~/.freshbooks-mcp/tokens.enc)
- FRESHBOOKS_TOKEN_PASSWORD (mixed into the token encryption key)
- FRESHBOOKS_ACCESS_TOKEN and friends (switches to the read-only EnvTokenStore)
- OAUTH_STATE_TTL_SECONDS (default: 600)
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from urllib.parse import urlparse

from freshbooks_mcp.auth.models import OAuthConfig
from freshbooks_mcp.auth.state import DEFAULT_STATE_TTL_SECONDS
from freshbooks_mcp.auth.storage import (
    ENV_ACCESS_TOKEN,
    EncryptedFileTokenStore,
    EnvTokenStore,
    TokenStore,
)
from freshbooks_mcp.utils.errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_FILE = Path.home() / ".freshbooks-mcp" / "tokens.enc"

_REQUIRED_VARS = {
    "FRESHBOOKS_CLIENT_ID": "Get your client ID from the FreshBooks Developer Portal.",
    "FRESHBOOKS_CLIENT_SECRET": (
        "Get your client secret from the FreshBooks Developer Portal."
    ),
    "FRESHBOOKS_REDIRECT_URI": (
        "Set to your OAuth redirect URI (e.g. https://localhost:3000/callback)."
    ),
}

_LOCAL_HOSTS = {"localhost", "127.0.0.1", "::1"}


def load_oauth_config() -> OAuthConfig:
    """Load OAuth configuration from environment variables.

    Returns:
        The OAuth client configuration.

    Raises:
        ValidationError: If a required variable is missing.
    """
    values: dict[str, str] = {}
    for var, hint in _REQUIRED_VARS.items():
        value = os.getenv(var, "").strip()
        if not value:
            raise ValidationError(
                f"{var} environment variable is required",
                field=var,
                details={"hint": hint},
            )
        values[var] = value

    scopes_env = os.getenv("FRESHBOOKS_SCOPES", "")
    scopes = tuple(s.strip() for s in scopes_env.split(",") if s.strip())

    return OAuthConfig(
        client_id=values["FRESHBOOKS_CLIENT_ID"],
        client_secret=values["FRESHBOOKS_CLIENT_SECRET"],
        redirect_uri=values["FRESHBOOKS_REDIRECT_URI"],
        scopes=scopes or None,
    )


def validate_oauth_config(config: OAuthConfig) -> None:
    """Sanity-check configuration values.

    Raises:
        ValidationError: If a value is clearly malformed.
    """
    if len(config.client_id) < 10:
        raise ValidationError(
            "Client ID appears to be invalid (too short)", field="client_id"
        )

    if len(config.client_secret) < 10:
        raise ValidationError(
            "Client secret appears to be invalid (too short)", field="client_secret"
        )

    parsed = urlparse(config.redirect_uri)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(
            "Redirect URI must be a valid http(s) URL", field="redirect_uri"
        )

    if parsed.scheme == "http" and parsed.hostname not in _LOCAL_HOSTS:
        logger.warning(
            "Using insecure HTTP redirect URI for a non-local host. "
            "Consider using HTTPS."
        )


def initialize_oauth_config() -> OAuthConfig:
    """Load and validate OAuth configuration from the environment."""
    config = load_oauth_config()
    validate_oauth_config(config)
    return config


def create_token_store() -> TokenStore:
    """Pick the token store for this process.

    FRESHBOOKS_ACCESS_TOKEN in the environment selects the read-only
    EnvTokenStore (CI); otherwise tokens live in the encrypted file.
    """
    if os.getenv(ENV_ACCESS_TOKEN):
        logger.info("Using environment token store (read-only)")
        return EnvTokenStore()

    token_file = os.getenv("FRESHBOOKS_TOKEN_FILE")
    path = Path(token_file) if token_file else DEFAULT_TOKEN_FILE
    return EncryptedFileTokenStore(path)


def get_state_ttl_seconds() -> int:
    """Get the OAuth state TTL from OAUTH_STATE_TTL_SECONDS with a fallback."""
    try:
        return int(os.getenv("OAUTH_STATE_TTL_SECONDS", str(DEFAULT_STATE_TTL_SECONDS)))
    except ValueError:
        logger.warning(
            "Invalid OAUTH_STATE_TTL_SECONDS value, using default %d",
            DEFAULT_STATE_TTL_SECONDS,
        )
        return DEFAULT_STATE_TTL_SECONDS


__all__ = [
    "DEFAULT_TOKEN_FILE",
    "load_oauth_config",
    "validate_oauth_config",
    "initialize_oauth_config",
    "create_token_store",
    "get_state_ttl_seconds",
]

"""Database credential handling.

Passwords are read from the environment and never from URLs or config
files, so they do not end up in logs, reports, or audit entries.
"""

import logging
import os
import re
from abc import ABC, abstractmethod
from urllib.parse import urlparse

from .errors import VCFIngestError

logger = logging.getLogger(__name__)

PASSWORD_ENV_VAR = "VCF_INGEST_DB_PASSWORD"
FALLBACK_PASSWORD_ENV_VAR = "PGPASSWORD"


class SecretProvider(ABC):
    @abstractmethod
    def get_secret(self, key: str) -> str | None:
        """Return the secret stored under ``key``, or None."""
        pass


class EnvSecretProvider(SecretProvider):
    """Reads secrets from environment variables."""

    def __init__(self, prefix: str = ""):
        self.prefix = prefix

    def get_secret(self, key: str) -> str | None:
        full_key = f"{self.prefix}{key}" if self.prefix else key
        value = os.environ.get(full_key)
        if value is not None:
            logger.debug("Secret loaded from environment variable: %s", full_key)
        return value


class CredentialValidationError(VCFIngestError):
    """Raised when credentials are found in insecure locations."""

    pass


def validate_no_password_in_url(url: str) -> None:
    """Reject database URLs that embed a password.

    Raises:
        CredentialValidationError: If a password is present in the URL.
    """
    parsed = urlparse(url)
    user_info = parsed.netloc.rsplit("@", 1)[0] if "@" in parsed.netloc else ""

    if parsed.password or ":" in user_info:
        raise CredentialValidationError(
            "Database password detected in connection URL. "
            f"Provide it via {PASSWORD_ENV_VAR} or {FALLBACK_PASSWORD_ENV_VAR} instead."
        )


def mask_password_in_url(url: str) -> str:
    """Replace any password in a database URL with ***MASKED***."""
    pattern = r"(://[^:/@]+:)([^@]+)(@)"
    return re.sub(pattern, r"\1***MASKED***\3", url)


def get_database_password(
    provider: SecretProvider | None = None,
    password_env_var: str = PASSWORD_ENV_VAR,
) -> str | None:
    """Look up the database password, falling back to PGPASSWORD."""
    if provider is None:
        provider = EnvSecretProvider()

    for key in (password_env_var, FALLBACK_PASSWORD_ENV_VAR):
        password = provider.get_secret(key)
        if password:
            logger.info("Database password loaded from %s", key)
            return password

    return None

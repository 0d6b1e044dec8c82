"""Configuration file support for vcf-ingest."""

import logging
import tomllib
from pathlib import Path
from typing import Any

from .errors import ConfigValidationError, VCFIngestError
from .importer import ImportConfig

logger = logging.getLogger(__name__)

CONFIG_TABLE = "vcf_ingest"

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

CREDENTIAL_KEYS = {
    "password",
    "db_password",
    "database_password",
    "secret",
    "api_key",
    "token",
    "credentials",
    "auth",
}

VALID_FIELDS = {
    "batch_size",
    "gene_padding_bp",
    "placeholder_biotype",
    "batch_timeout",
    "log_level",
}


class CredentialInConfigError(VCFIngestError):
    """Raised when credentials are detected in configuration files."""

    pass


def detect_credentials_in_config(
    config_dict: dict[str, Any],
    path: str = "",
    warn_only: bool = True,
) -> list[str]:
    """Detect potential credentials in configuration dictionary.

    Args:
        config_dict: Configuration dictionary to check.
        path: Current path in nested config (for error messages).
        warn_only: If True, emit warning. If False, raise error.

    Returns:
        List of detected credential key paths.

    Raises:
        CredentialInConfigError: If credentials found and warn_only=False.
    """
    detected = []

    for key, value in config_dict.items():
        current_path = f"{path}.{key}" if path else key
        key_lower = key.lower()

        if any(cred_key in key_lower for cred_key in CREDENTIAL_KEYS):
            if value:
                detected.append(current_path)

        if isinstance(value, dict):
            detected.extend(detect_credentials_in_config(value, current_path, warn_only=True))

    if detected and not path:
        msg = (
            f"Potential credentials detected in config file: {', '.join(detected)}. "
            "Database passwords must be provided via VCF_INGEST_DB_PASSWORD or "
            "PGPASSWORD, not configuration files."
        )
        if warn_only:
            logger.warning(msg)
        else:
            raise CredentialInConfigError(msg)

    return detected


def _check_positive_int(config_dict: dict[str, Any], key: str, allow_zero: bool = False) -> None:
    if key not in config_dict:
        return
    value = config_dict[key]
    # bool is an int subclass
    if not isinstance(value, int) or isinstance(value, bool):
        raise ConfigValidationError(f"{key} must be an integer, got {type(value).__name__}")
    if value < 0 or (value == 0 and not allow_zero):
        qualifier = "non-negative" if allow_zero else "positive"
        raise ConfigValidationError(f"{key} must be {qualifier}, got {value}")


def validate_config(config_dict: dict[str, Any]) -> None:
    """Validate configuration values.

    Raises:
        ConfigValidationError: If any configuration value is invalid.
    """
    _check_positive_int(config_dict, "batch_size")
    _check_positive_int(config_dict, "gene_padding_bp", allow_zero=True)

    if "batch_timeout" in config_dict:
        timeout = config_dict["batch_timeout"]
        if timeout is not None:
            if not isinstance(timeout, int | float) or isinstance(timeout, bool):
                raise ConfigValidationError(
                    f"batch_timeout must be a number, got {type(timeout).__name__}"
                )
            if timeout <= 0:
                raise ConfigValidationError(f"batch_timeout must be positive, got {timeout}")

    if "placeholder_biotype" in config_dict:
        biotype = config_dict["placeholder_biotype"]
        if not isinstance(biotype, str) or not biotype.strip():
            raise ConfigValidationError("placeholder_biotype must be a non-empty string")

    if "log_level" in config_dict:
        log_level = config_dict["log_level"]
        if not isinstance(log_level, str):
            raise ConfigValidationError(
                f"log_level must be a string, got {type(log_level).__name__}"
            )
        if log_level.upper() not in VALID_LOG_LEVELS:
            raise ConfigValidationError(
                f"log_level must be one of {sorted(VALID_LOG_LEVELS)}, got '{log_level}'"
            )


def load_config(config_path: Path, overrides: dict[str, Any] | None = None) -> ImportConfig:
    """Load import configuration from the [vcf_ingest] table of a TOML file.

    Args:
        config_path: Path to the TOML configuration file.
        overrides: Optional dict of values to override loaded config.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ConfigValidationError: If the file is not valid TOML or a value is invalid.
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "rb") as f:
        try:
            toml_data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigValidationError(f"Invalid TOML in {config_path}: {e}") from e

    detect_credentials_in_config(toml_data, warn_only=True)

    config_dict = dict(toml_data.get(CONFIG_TABLE, {}))

    if overrides:
        config_dict.update({k: v for k, v in overrides.items() if v is not None})

    validate_config(config_dict)

    unknown = set(config_dict) - VALID_FIELDS
    if unknown:
        logger.warning("Ignoring unknown config keys: %s", ", ".join(sorted(unknown)))

    filtered_config = {k: v for k, v in config_dict.items() if k in VALID_FIELDS}
    if "log_level" in filtered_config:
        filtered_config["log_level"] = filtered_config["log_level"].upper()

    return ImportConfig(**filtered_config)

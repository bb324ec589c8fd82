"""
Configuration Management

Loads environment variables and provides settings for the import pipeline.
Uses python-dotenv for local development and environment variables for production.
"""

import logging
import os
from typing import Optional

from dotenv import load_dotenv

from db.connection import ConnectionInfo
from shipment_etl.errors import ConfigurationError, ResultCode
from shipment_etl.options import ImportOptions

logger = logging.getLogger(__name__)

# Load .env file for local development
load_dotenv()

_TRUE = {"true", "1", "yes"}
_FALSE = {"false", "0", "no"}


def get_int_env(key: str, default: int) -> int:
    """Integer setting; invalid values fall back to the default with a warning."""
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        logger.warning(f"Configuration key {key} has invalid integer value '{raw}', using default {default}")
        return default


def get_optional_int_env(key: str, default: Optional[int]) -> Optional[int]:
    """Like get_int_env, but "none", "infinite" or -1 mean no limit."""
    raw = os.getenv(key)
    if raw is not None and raw.strip().lower() in ("none", "infinite", "-1"):
        return None
    if default is None and (raw is None or not raw.strip()):
        return None
    return get_int_env(key, default or 0)


def get_bool_env(key: str, default: bool) -> bool:
    """Boolean setting accepting true/false/1/0/yes/no."""
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    logger.warning(f"Configuration key {key} has invalid boolean value '{raw}', using default {default}")
    return default


class Settings:
    """
    Application settings loaded from environment variables.

    Ensures no hardcoded credentials in code.
    """

    def __init__(self):
        """Read the environment and validate required settings."""
        # Database Configuration
        self.DB_HOST: Optional[str] = os.getenv("DB_HOST", "localhost")
        self.DB_PORT: int = get_int_env("DB_PORT", 5432)
        self.DB_NAME: Optional[str] = os.getenv("DB_NAME", "shipments")
        self.DB_USER: Optional[str] = os.getenv("DB_USER")
        self.DB_PASSWORD: Optional[str] = os.getenv("DB_PASSWORD")
        self.TARGET_TABLE: Optional[str] = os.getenv("TARGET_TABLE")

        # Google Sheets Configuration
        self.GOOGLE_SHEET_ID: Optional[str] = os.getenv("GOOGLE_SHEET_ID")
        self.GOOGLE_CREDENTIALS_PATH: str = os.getenv("GOOGLE_CREDENTIALS_PATH", "credentials.json")
        self.SHEET_NAME: Optional[str] = os.getenv("SHEET_NAME") or None

        # Import Configuration
        self.BATCH_SIZE: int = get_int_env("BATCH_SIZE", 2000)
        self.PRESERVE_IDENTITY: bool = get_bool_env("PRESERVE_IDENTITY", False)
        self.LOCK_RESOURCE: str = os.getenv("LOCK_RESOURCE", "ImportShipmentDataLock")
        self.LOCK_TIMEOUT_MS: Optional[int] = get_optional_int_env("LOCK_TIMEOUT_MS", 0)

        # Logging Configuration
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
        self.LOG_FILE: str = os.getenv("LOG_FILE", "logs/import.log")

        self._validate_settings()

    def _validate_settings(self) -> None:
        """
        Validate that all required settings are provided.

        Raises:
            ConfigurationError: If a required setting is missing, carrying the
                result code for the missing group
        """
        if not self.GOOGLE_SHEET_ID:
            raise ConfigurationError(
                "Missing required environment variable: GOOGLE_SHEET_ID. Please check your .env file.",
                ResultCode.MISSING_SOURCE,
            )

        missing_fields = [
            field for field in ("DB_HOST", "DB_NAME", "DB_USER", "DB_PASSWORD")
            if not getattr(self, field, None)
        ]
        if missing_fields:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing_fields)}. "
                f"Please check your .env file.",
                ResultCode.MISSING_CONNECTION,
            )

        if not self.TARGET_TABLE:
            raise ConfigurationError(
                "Missing required environment variable: TARGET_TABLE. Please check your .env file.",
                ResultCode.MISSING_TARGET_TABLE,
            )

    def connection_info(self) -> ConnectionInfo:
        return ConnectionInfo(
            host=self.DB_HOST,
            port=self.DB_PORT,
            database=self.DB_NAME,
            user=self.DB_USER,
            password=self.DB_PASSWORD,
        )

    def import_options(self) -> ImportOptions:
        """Pipeline options built from the import settings."""
        return ImportOptions(
            batch_size=self.BATCH_SIZE,
            preserve_identity=self.PRESERVE_IDENTITY,
            lock_timeout_ms=self.LOCK_TIMEOUT_MS,
            lock_resource=self.LOCK_RESOURCE,
        )

    def __repr__(self) -> str:
        """Return string representation (excluding sensitive data)."""
        return (
            f"Settings("
            f"DB_HOST={self.DB_HOST}, "
            f"DB_NAME={self.DB_NAME}, "
            f"TARGET_TABLE={self.TARGET_TABLE}, "
            f"SHEET_NAME={self.SHEET_NAME}, "
            f"BATCH_SIZE={self.BATCH_SIZE}, "
            f"PRESERVE_IDENTITY={self.PRESERVE_IDENTITY}"
            f")"
        )

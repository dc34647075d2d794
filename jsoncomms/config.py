# jsoncomms/config.py

"""
Configuration for the jsoncomms JSON helpers.

This module defines the limits and strictness flags shared by every handler
using Pydantic's `BaseSettings` class, so a service can load them from the
environment (prefix `JSONCOMMS_`) or from a `.env` file.

The settings object is frozen: build it once at startup and hand the same
instance to every `JSONTools`. Nothing in the library mutates it.

This config powers:
- JSON body size ceiling
- Unknown field policy (strict vs. lenient decoding)
- Upload limits (consumed by upload handlers, not by the JSON path)
"""

from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Ceiling applied when `max_json_size` is left at 0
DEFAULT_MAX_JSON_SIZE = 1024 * 1024  # one megabyte


class Settings(BaseSettings):
    # ─── Body Limits (bytes, 0 means "use the default") ───────────────────────
    max_json_size: int = 0
    max_xml_size: int = 0
    max_file_size: int = 0

    # ─── Uploads ───────────────────────────────────────────────────────────────
    # Allowed media types for uploaded files, e.g. ["image/jpeg", "image/png"]
    allowed_file_types: List[str] = []

    # ─── Decoding Policy ───────────────────────────────────────────────────────
    # False rejects any JSON key the destination type does not declare
    allow_unknown_fields: bool = False

    # ─── Service ───────────────────────────────────────────────────────────────
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="JSONCOMMS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    @field_validator("max_json_size", "max_xml_size", "max_file_size")
    @classmethod
    def check_non_negative(cls, v: int) -> int:
        """
        Size limits are byte counts; 0 keeps the default, negatives are a typo.
        """
        if v < 0:
            raise ValueError("size limits must be zero or a positive number of bytes")
        return v

    @property
    def json_size_limit(self) -> int:
        """Effective JSON body ceiling in bytes."""
        return self.max_json_size or DEFAULT_MAX_JSON_SIZE


# Process-wide settings, importable throughout the service
settings = Settings()

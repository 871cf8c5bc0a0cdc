"""
core/config.py -- Remediator settings, loaded once with pydantic-settings.

Every JF_ variable is read here and nowhere else; callers use get_settings().
The terminal colour switches (NO_COLOR, FORCE_COLOR) belong to core/formatter.py.

Variables use the JF_ prefix (JF_ALLOWED_LICENSES, JF_FAIL, ...) and may also
come from a .env file in the working directory.

Core algorithms (differ, resolver, versions) never import this module. The
CLI and the API read the settings and pass the values in.

Layer rule: core/ is the kernel. This module may not import from api/ or
handlers/.
"""

import json
import logging
from functools import lru_cache
from typing import Annotated, Any

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .branches import validate_branch_template

logger = logging.getLogger("remediator.config")


class Settings(BaseSettings):
    """Settings loaded from JF_* environment variables and .env.

    All fields have defaults so Settings() can be instantiated in tests
    without any environment.
    """

    model_config = SettingsConfigDict(
        env_prefix="JF_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    debug: bool = False
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Scan differencing
    # ------------------------------------------------------------------

    # JSON list ('["MIT", "Apache-2.0"]') or comma-separated ("MIT, Apache-2.0")
    allowed_licenses: Annotated[list[str], NoDecode] = []
    fail: bool = True

    # ------------------------------------------------------------------
    # Remediation
    # ------------------------------------------------------------------

    branch_name_template: str = ""
    commit_message_template: str = ""
    pull_request_title_template: str = ""
    # One branch and pull request per technology instead of one per package
    aggregate_fixes: bool = False
    requirements_file: str = ""

    # ------------------------------------------------------------------
    # Snapshot loading
    # ------------------------------------------------------------------

    snapshot_timeout: int = 30

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("allowed_licenses", mode="before")
    @classmethod
    def split_licenses(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        text = value.strip()
        if not text:
            return []
        if text.startswith("["):
            return json.loads(text)
        return [item.strip() for item in text.split(",") if item.strip()]

    @field_validator("log_level")
    @classmethod
    def normalize_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"unknown log level: {value!r}")
        return level

    @model_validator(mode="after")
    def validate_templates(self) -> "Settings":
        """Reject a branch template without ${BRANCH_NAME_HASH} at startup.

        Without the hash two different fixes could be pushed to the same
        branch name.
        """
        validate_branch_template(self.branch_name_template)
        if self.debug and self.log_level != "DEBUG":
            logger.debug("JF_DEBUG set, overriding log level %s", self.log_level)
            self.log_level = "DEBUG"
        return self


@lru_cache
def get_settings() -> Settings:
    """Settings are built on first use and cached; tests reset with cache_clear()."""
    return Settings()

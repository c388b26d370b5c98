"""
Application configuration loaded from environment variables.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import List, Literal, Optional


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(
        env_file = ".env",
        env_file_encoding = "utf-8",
        extra = "ignore"
    )

    # Database
    database_url: str = Field(default="sqlite+aiosqlite:///./idsyncro.db", alias="DATABASE_URL")
    db_busy_timeout: float = Field(default=30.0, alias="DB_BUSY_TIMEOUT")

    # Identifiers
    id_prefix: str = Field(default="SWT", alias="ID_PREFIX")
    code_retry_limit: int = Field(default=5, ge=1, alias="CODE_RETRY_LIMIT")
    offer_validity_days: int = Field(default=15, ge=0, alias="OFFER_VALIDITY_DAYS")

    # Signing
    signature_mode: Literal["hash", "rsa"] = Field(default="hash", alias="SIGNATURE_MODE")
    signing_private_key_path: Optional[str] = Field(default=None, alias="SIGNING_PRIVATE_KEY_PATH")
    signing_public_key_path: Optional[str] = Field(default=None, alias="SIGNING_PUBLIC_KEY_PATH")

    # Application
    app_name: str = Field(default="IDSyncro", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    port: int = Field(default=8000, alias="PORT")
    cors_origins: str = Field(default="http://localhost:3000", alias="CORS_ORIGINS")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_dir: str = Field(default="logs", alias="LOG_DIR")

    @property
    def cors_origin_list(self) -> List[str]:
        """CORS origins split from the comma separated setting."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

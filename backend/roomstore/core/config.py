"""
Runtime configuration for the session store.

All values are read from the environment with the ``ROOMSTORE_`` prefix
(or from a local ``.env`` file), e.g. ``ROOMSTORE_DATABASE_URL``.
"""
from functools import lru_cache
from typing import List

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MIN_TOKEN_BYTES = 16
# 54 bytes encode to 72 characters, the most bcrypt will hash.
MAX_TOKEN_BYTES = 54


class AccountSettings(BaseModel):
    """A user provisioned at start-up (see ``services.accounts``)."""
    id: str
    username: str
    # plain token, or a bcrypt hash of it
    token: str = Field(min_length=1)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="ROOMSTORE_", env_file=".env", extra="ignore")

    database_url: str = Field(default="sqlite:///./roomstore.db", description="SQLAlchemy database URL")
    pool_timeout: float = Field(default=10.0, gt=0, description="Seconds to wait for a pooled connection")
    connect_timeout: int = Field(default=10, gt=0, description="Seconds to wait when opening a connection")

    retry_attempts: int = Field(default=3, ge=1, description="Attempts for transient storage errors")
    retry_backoff: float = Field(default=0.1, ge=0, description="Base delay, doubled on every retry")

    token_bytes: int = Field(default=32, description="Random bytes per issued token")
    token_hash_rounds: int = Field(default=12, ge=4, le=31, description="bcrypt cost for stored user tokens")
    require_host_user: bool = Field(default=False, description="Room hosts must be registered user ids")

    log_level: str = Field(default="INFO")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    accounts: List[AccountSettings] = Field(default_factory=list)

    @field_validator("token_bytes")
    @classmethod
    def validate_token_bytes(cls, v):
        if v < MIN_TOKEN_BYTES:
            raise ValueError(f"token_bytes must be at least {MIN_TOKEN_BYTES} (128 bits), got {v}")
        if v > MAX_TOKEN_BYTES:
            raise ValueError(f"token_bytes must be at most {MAX_TOKEN_BYTES}, got {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: '{v}'")
        return level


@lru_cache
def get_settings() -> Settings:
    return Settings()

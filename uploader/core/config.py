from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict, SettingsError

_CREDENTIAL_KEYS = frozenset(
    {"aws_access_key_id", "aws_secret_access_key", "aws_session_token"}
)


class ConfigError(Exception):
    """Raised when the service cannot start with the given configuration."""


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=8080, alias="PORT")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    bucket: str = Field(..., min_length=1, alias="BUCKET")
    bucket_path: str = Field(default="", alias="BUCKET_PATH")
    base_url: str = Field(..., min_length=1, alias="BASE_URL")

    auth_user: str | None = Field(default=None, alias="AUTH_USER")
    auth_password: str | None = Field(default=None, alias="AUTH_PASSWORD")

    object_metadata: dict[str, str] = Field(default_factory=dict, alias="OBJECT_METADATA")
    storage_credentials: dict[str, str] | None = Field(
        default=None, alias="STORAGE_CREDENTIALS_JSON"
    )

    storage_backend: Literal["s3", "local"] = Field(default="s3", alias="STORAGE_BACKEND")
    s3_endpoint: str | None = Field(default=None, alias="S3_ENDPOINT_URL")
    s3_region: str | None = Field(default=None, alias="S3_REGION")
    s3_part_size: int = Field(default=8 * 1024 * 1024, ge=5 * 1024 * 1024, alias="S3_PART_SIZE")
    local_storage_dir: Path = Field(default=Path("./storage"), alias="LOCAL_STORAGE_DIR")

    @field_validator("base_url")
    @classmethod
    def _normalize_base_url(cls, value: str) -> str:
        return value.rstrip("/") + "/"

    @field_validator("storage_credentials")
    @classmethod
    def _check_credential_keys(cls, value: dict[str, str] | None) -> dict[str, str] | None:
        if value is None:
            return value
        unknown = set(value) - _CREDENTIAL_KEYS
        if unknown:
            raise ValueError(f"unknown credential keys: {', '.join(sorted(unknown))}")
        return value


def load_settings(**overrides) -> Settings:
    try:
        return Settings(**overrides)
    except (ValidationError, SettingsError) as exc:
        raise ConfigError(str(exc)) from exc


@lru_cache
def get_settings() -> Settings:
    return load_settings()

"""Pydantic models for application configuration.

Configuration priority (lowest to highest):
1. Code defaults (defined in model Field defaults)
2. defaults.yaml, then config.yaml
3. Environment variables
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AvatarStorageConfig(BaseModel):
    """Where blobs are written and how their public location is formed."""

    model_config = ConfigDict(extra="forbid")

    storage_path: str = "uploads/avatars"
    public_url_prefix: str = "/uploads/avatars"
    name_prefix: str = "avatar_"

    @field_validator("name_prefix")
    @classmethod
    def _reject_path_separators(cls, value: str) -> str:
        if "/" in value or "\\" in value:
            raise ValueError("name_prefix must not contain path separators")
        return value


class UploadPolicyConfig(BaseModel):
    """Limits applied to uploads before they are stored."""

    model_config = ConfigDict(extra="forbid")

    max_file_size: int = Field(default=5 * 1024 * 1024, gt=0)  # 5 MiB
    allowed_formats: list[str] = Field(
        default_factory=lambda: ["jpeg", "jpg", "png", "webp"]
    )

    @field_validator("allowed_formats")
    @classmethod
    def _normalize_formats(cls, value: list[str]) -> list[str]:
        formats = [fmt.strip().lower().lstrip(".") for fmt in value if fmt.strip()]
        if not formats:
            raise ValueError("allowed_formats must not be empty")
        return formats


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = ConfigDict(extra="forbid")

    level: str = "INFO"


class AppConfig(BaseModel):
    """Main application configuration.

    Property access is type-safe - misspelled property names will raise AttributeError.
    """

    model_config = ConfigDict(extra="forbid")

    database_url: str = "sqlite+aiosqlite:///attachments.db"
    avatar_storage: AvatarStorageConfig = Field(default_factory=AvatarStorageConfig)
    upload_policy: UploadPolicyConfig = Field(default_factory=UploadPolicyConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

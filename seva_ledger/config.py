"""Configuration for the back-office service."""

from typing import Literal, Optional

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


class Settings(BaseSettings):
    """Runtime settings, read from the environment or a ``.env`` file."""

    storage_backend: Literal["memory", "dynamodb"] = Field(
        default="memory", validation_alias=AliasChoices("SEVA_STORAGE_BACKEND", "storage_backend"),
    )
    table_prefix: str = Field(
        default="seva", validation_alias=AliasChoices("SEVA_TABLE_PREFIX", "table_prefix"),
    )
    aws_region: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("AWS_REGION", "aws_region"),
    )
    dynamodb_endpoint_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("DYNAMODB_ENDPOINT_URL", "dynamodb_endpoint_url"),
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", validation_alias=AliasChoices("LOG_LEVEL", "log_level"),
    )
    log_format: Literal["standard", "json"] = Field(
        default="standard", validation_alias=AliasChoices("LOG_FORMAT", "log_format"),
    )
    seed_catalog: bool = Field(
        default=True, validation_alias=AliasChoices("SEVA_SEED_CATALOG", "seed_catalog"),
    )

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator("storage_backend", "log_format", mode="before")
    @classmethod
    def lower_case(cls, value):
        return value.lower() if isinstance(value, str) else value

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_case(cls, value):
        return value.upper() if isinstance(value, str) else value

    @field_validator("aws_region", "dynamodb_endpoint_url", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        return value or None

    @classmethod
    def from_env(cls, **overrides) -> "Settings":
        """Create settings from environment variables.

        Keyword overrides take precedence over the environment.
        """
        try:
            return cls(**overrides)
        except ValidationError as e:
            error = e.errors()[0]
            field = ".".join(str(part) for part in error.get("loc", ()))
            raise ConfigurationError(f"Invalid setting {field}: {error.get('msg')}") from e


def build_storage(settings: Settings):
    from .storage import DynamoDBStorage, InMemoryStorage

    if settings.storage_backend == "dynamodb":
        return DynamoDBStorage(
            table_prefix=settings.table_prefix,
            region_name=settings.aws_region,
            endpoint_url=settings.dynamodb_endpoint_url,
        )
    return InMemoryStorage()

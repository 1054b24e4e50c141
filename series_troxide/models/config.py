"""
Pydantic model for application configuration.
Provides validation for all settings and resolves the directories they point at.
"""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from series_troxide.utils.path import get_cache_dir, get_data_dir


class AppConfig(BaseModel):
    """A validated configuration model for the application."""

    # Storage locations; empty means the platform default
    data_dir: str = ""
    cache_dir: str = ""

    # Network Settings
    request_timeout: int = 30
    max_connections: int = 8

    # Internal fields not loaded from INI file
    config_path: str = Field(..., repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("data_dir", "cache_dir")
    @classmethod
    def validate_directory(cls, v: str) -> str:
        """Expands '~' and rejects relative directories."""
        if not v:
            return v
        expanded = Path(v).expanduser()
        if not expanded.is_absolute():
            raise ValueError(f"Directory '{v}' must be an absolute path.")
        return str(expanded)

    @field_validator("request_timeout")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        if v < 1 or v > 300:
            raise ValueError("Request timeout must be between 1 and 300 seconds.")
        return v

    @field_validator("max_connections")
    @classmethod
    def validate_connections(cls, v: int) -> int:
        if v < 1 or v > 32:
            raise ValueError("Max connections must be between 1 and 32.")
        return v

    def resolve_data_dir(self) -> Path | None:
        """Returns the custom data directory or the platform default, if any."""
        return Path(self.data_dir) if self.data_dir else get_data_dir()

    def resolve_cache_dir(self) -> Path | None:
        """Returns the custom cache directory or the platform default, if any."""
        return Path(self.cache_dir) if self.cache_dir else get_cache_dir()

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}

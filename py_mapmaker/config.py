"""Configuration management."""

import os
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, FilePath, field_validator, model_validator
from pydantic_settings import BaseSettings

from .core.model import MAX_LEVEL, MIN_LEVEL


class Settings(BaseSettings):
    """Process settings pulled from MAPMAKER_* environment variables."""

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="plain", description="Logging format (plain or json)")

    # Map size defaults
    default_width: int = Field(default=1000, ge=0, description="Default map width in pixels")
    default_height: int = Field(default=0, ge=0, description="Default map height in pixels")

    class Config:
        env_prefix = "MAPMAKER_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()


class MapOptions(BaseModel):
    """
    Options of one map generation run.

    Validation happens on construction, before any pipeline stage runs; an
    invalid combination raises ``pydantic.ValidationError``.
    """

    model_config = ConfigDict(frozen=True)

    input_path: Optional[FilePath] = Field(default=None, description="Boundary data file")
    territory_level: int = Field(
        ..., ge=MIN_LEVEL, le=MAX_LEVEL, description="admin_level used for territories"
    )
    bonus_levels: List[int] = Field(
        default_factory=list, description="admin_levels used for bonus areas"
    )
    width: int = Field(default_factory=lambda: settings.default_width, ge=0,
                       description="Map width in pixels, 0 for automatic")
    height: int = Field(default_factory=lambda: settings.default_height, ge=0,
                        description="Map height in pixels, 0 for automatic")
    compression_tolerance: float = Field(
        default=0.0, ge=0.0, allow_inf_nan=False, description="Line simplification tolerance"
    )
    filter_tolerance: float = Field(
        default=0.0, ge=0.0, allow_inf_nan=False, description="Area size ratio tolerance"
    )
    verbose: bool = Field(default=False, description="Enable verbose logging")

    @field_validator("input_path")
    @classmethod
    def check_readable(cls, value: Optional[Path]) -> Optional[Path]:
        if value is not None and not os.access(value, os.R_OK):
            raise ValueError(f"input file is not readable: {value}")
        return value

    @field_validator("bonus_levels")
    @classmethod
    def check_bonus_levels(cls, value: List[int]) -> List[int]:
        for level in value:
            if not MIN_LEVEL <= level <= MAX_LEVEL:
                raise ValueError(f"bonus level {level} is not between {MIN_LEVEL} and {MAX_LEVEL}")
        return sorted(set(value))

    @model_validator(mode="after")
    def check_combination(self) -> "MapOptions":
        if self.territory_level in self.bonus_levels:
            raise ValueError(
                f"bonus levels must differ from the territory level {self.territory_level}"
            )
        if self.width == 0 and self.height == 0:
            raise ValueError("width and height cannot both be automatic (0)")
        return self

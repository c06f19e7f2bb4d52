"""Configuration models and YAML loader for the marketplace."""

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator

DEFAULT_CATEGORIES = [
    "General",
    "Technology",
    "Retail",
    "Food Service",
    "Marketing",
    "Administration",
    "Customer Service",
    "Other",
]


class DatabaseConfig(BaseModel):
    """Document store backend selection."""

    backend: Literal["sqlite", "memory"] = "sqlite"
    path: str = "data/studwerk.db"


class MarketplaceConfig(BaseModel):
    """Listing limits and the job category vocabulary."""

    categories: list[str] = Field(default_factory=lambda: list(DEFAULT_CATEGORIES))
    default_list_limit: int | None = Field(default=None, ge=1)
    featured_count: int = Field(default=3, ge=1)
    recent_applications_count: int = Field(default=5, ge=1)

    @field_validator("categories")
    @classmethod
    def categories_not_empty(cls, v: list[str]) -> list[str]:
        cleaned = [c.strip() for c in v if c.strip()]
        if not cleaned:
            msg = "at least one category must be configured"
            raise ValueError(msg)
        return cleaned


class RelevanceConfig(BaseModel):
    """Weights for ranking search hits by where the text matched."""

    title_weight: int = Field(default=10, ge=0)
    location_weight: int = Field(default=5, ge=0)
    category_weight: int = Field(default=3, ge=0)
    description_weight: int = Field(default=1, ge=0)


class Settings(BaseModel):
    """Top-level settings loaded from YAML."""

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    marketplace: MarketplaceConfig = Field(default_factory=MarketplaceConfig)
    relevance: RelevanceConfig = Field(default_factory=RelevanceConfig)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)

"""Tests for configuration models and YAML loading."""

from pathlib import Path
from textwrap import dedent

import pytest
from pydantic import ValidationError

from studwerk.core.config import (
    DEFAULT_CATEGORIES,
    DatabaseConfig,
    MarketplaceConfig,
    RelevanceConfig,
    Settings,
)


class TestDatabaseConfig:
    def test_defaults(self) -> None:
        d = DatabaseConfig()
        assert d.backend == "sqlite"
        assert d.path == "data/studwerk.db"

    def test_unknown_backend(self) -> None:
        with pytest.raises(ValidationError):
            DatabaseConfig(backend="firestore")  # type: ignore[arg-type]


class TestMarketplaceConfig:
    def test_defaults(self) -> None:
        m = MarketplaceConfig()
        assert m.categories == DEFAULT_CATEGORIES
        assert m.default_list_limit is None
        assert m.featured_count == 3
        assert m.recent_applications_count == 5

    def test_default_categories_not_shared(self) -> None:
        a = MarketplaceConfig()
        a.categories.append("Tutoring")
        assert "Tutoring" not in MarketplaceConfig().categories

    def test_categories_stripped(self) -> None:
        m = MarketplaceConfig(categories=[" Retail ", "", "Other"])
        assert m.categories == ["Retail", "Other"]

    def test_empty_categories(self) -> None:
        with pytest.raises(ValidationError):
            MarketplaceConfig(categories=[])

    def test_limit_min_one(self) -> None:
        with pytest.raises(ValidationError):
            MarketplaceConfig(default_list_limit=0)


class TestRelevanceConfig:
    def test_defaults(self) -> None:
        r = RelevanceConfig()
        assert (r.title_weight, r.location_weight, r.category_weight, r.description_weight) == (10, 5, 3, 1)

    def test_negative_weight(self) -> None:
        with pytest.raises(ValidationError):
            RelevanceConfig(title_weight=-1)


class TestSettingsFromYaml:
    def test_load(self, tmp_path: Path) -> None:
        cfg = tmp_path / "settings.yaml"
        cfg.write_text(dedent("""\
            database:
              backend: memory
            marketplace:
              categories: [Retail, Other]
              featured_count: 5
            relevance:
              title_weight: 20
        """))
        s = Settings.from_yaml(cfg)
        assert s.database.backend == "memory"
        assert s.marketplace.categories == ["Retail", "Other"]
        assert s.marketplace.featured_count == 5
        assert s.relevance.title_weight == 20
        assert s.relevance.location_weight == 5

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        cfg = tmp_path / "settings.yaml"
        cfg.write_text("")
        s = Settings.from_yaml(cfg)
        assert s.database.path == "data/studwerk.db"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            Settings.from_yaml(tmp_path / "nope.yaml")

    def test_invalid_values(self, tmp_path: Path) -> None:
        cfg = tmp_path / "settings.yaml"
        cfg.write_text("marketplace:\n  featured_count: 0\n")
        with pytest.raises(ValidationError):
            Settings.from_yaml(cfg)

    def test_example_config_loads(self) -> None:
        example = Path(__file__).resolve().parents[2] / "config" / "settings.example.yaml"
        s = Settings.from_yaml(example)
        assert s.marketplace.categories == DEFAULT_CATEGORIES

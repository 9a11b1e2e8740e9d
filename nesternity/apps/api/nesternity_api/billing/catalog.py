"""
Tier catalog loader + validator with JSON Schema validation
"""

import json
from pathlib import Path
from typing import Optional

from jsonschema import ValidationError as JsonSchemaValidationError
from jsonschema import validate

from .models import TierCatalogModel


class TierCatalogLoader:
    """
    Load and validate the tier catalog JSON against its JSON Schema
    """

    def __init__(self, catalog_path: Path, schema_path: Path):
        self.catalog_path = catalog_path
        self.schema_path = schema_path
        self._catalog: Optional[TierCatalogModel] = None

    def load(self) -> TierCatalogModel:
        """
        Load catalog JSON and validate it

        Raises:
            FileNotFoundError: Catalog or schema file not found
            ValueError: JSON Schema or Pydantic validation failed
        """
        with open(self.schema_path, "r", encoding="utf-8") as f:
            schema = json.load(f)

        with open(self.catalog_path, "r", encoding="utf-8") as f:
            catalog_json = json.load(f)

        return self.load_from_dict(catalog_json, schema)

    def load_from_dict(self, catalog_json: dict, schema: dict) -> TierCatalogModel:
        """Validate an already-parsed catalog document and cache the result"""
        try:
            validate(instance=catalog_json, schema=schema)
        except JsonSchemaValidationError as e:
            raise ValueError(f"JSON Schema validation failed: {e.message}") from e

        catalog = TierCatalogModel(**catalog_json)

        self._catalog = catalog
        return catalog

    def get_catalog(self) -> TierCatalogModel:
        """Get loaded catalog, loading it on first use"""
        if self._catalog is None:
            return self.load()
        return self._catalog


# Singleton instance
_catalog_loader: Optional[TierCatalogLoader] = None


def get_catalog_loader() -> TierCatalogLoader:
    """Get singleton catalog loader instance"""
    global _catalog_loader
    if _catalog_loader is None:
        fixtures_dir = Path(__file__).parent / "fixtures"
        _catalog_loader = TierCatalogLoader(
            fixtures_dir / "tier_catalog.json",
            fixtures_dir / "tier_catalog_schema.json",
        )
    return _catalog_loader


def get_tier_catalog() -> TierCatalogModel:
    """FastAPI dependency: the loaded tier catalog"""
    return get_catalog_loader().get_catalog()

# flyer_pipeline/delegates/config_store_delegate.py
import json
import logging
from pathlib import Path
from typing import List

import json5

from ..errors import ConfigError
from ..models import CatalogSpec

logger = logging.getLogger(__name__)


class ConfigStoreDelegate:
    """Lists and loads the per-catalog JSON definitions kept in the configs directory."""
    def __init__(self, configs_path: Path):
        self.configs_path = configs_path

    def list_configs(self) -> List[str]:
        if not self.configs_path.is_dir():
            logger.warning("Configs directory not found: %s", self.configs_path)
            return []
        return sorted(p.name for p in self.configs_path.glob("*.json") if p.is_file())

    def resolve(self, name: str) -> Path:
        path = Path(name)
        if path.suffix != ".json":
            path = path.with_name(path.name + ".json")
        if not path.is_absolute() and not path.exists():
            path = self.configs_path / path
        return path

    def load(self, name: str) -> CatalogSpec:
        """Loads a catalog definition by name ('lidl' or 'lidl.json') or path."""
        path = self.resolve(name)
        if not path.exists():
            raise ConfigError(f"catalog definition not found: {path}")
        try:
            with path.open("r", encoding="utf-8") as f:
                # json5 so hand-edited definitions may carry comments and trailing commas.
                data = json5.load(f)
        except ValueError as e:
            raise ConfigError(f"could not parse {path.name}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{path.name} must hold a JSON object")
        spec = CatalogSpec.from_dict(data)
        logger.info("Loaded catalog definition '%s' from %s", spec.id, path.name)
        return spec

    def save(self, spec: CatalogSpec, overwrite: bool = False) -> Path:
        """
        Writes `spec` as `<id>.json` in the configs directory. An existing definition
        is kept unless `overwrite` is set, so hand edits survive a re-discovery.
        """
        path = self.configs_path / f"{spec.id}.json"
        if path.exists() and not overwrite:
            logger.info("Catalog definition %s already exists, keeping it.", path.name)
            return path
        self.configs_path.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            json.dump(spec.to_dict(), f, indent=2, ensure_ascii=False)
        logger.info("Saved catalog definition '%s' to %s", spec.id, path.name)
        return path

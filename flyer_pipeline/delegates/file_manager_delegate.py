# flyer_pipeline/delegates/file_manager_delegate.py
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..errors import RegistryError
from ..models import Catalog

logger = logging.getLogger(__name__)

COVER_FILENAME = "cover-image.jpg"
REGISTRY_FILENAME = "newsletters.json"


def page_filename(page_number: int) -> str:
    """page-01.jpg, page-02.jpg, ... (two digits minimum so names sort with the pages)."""
    return f"page-{page_number:02d}.jpg"


class FileManagerDelegate:
    """Handles all file system interactions: the per-catalog image tree and the catalog registry."""
    def __init__(self, base_path: Path):
        self.base_path = base_path
        self.newsletters_path = base_path / "newsletters"
        self.registry_path = self.newsletters_path / REGISTRY_FILENAME

        self.newsletters_path.mkdir(parents=True, exist_ok=True)
        logger.info("File manager initialized. Data will be stored in subdirectories of: %s", base_path)

    def catalog_dir(self, catalog_id: str) -> Path:
        return self.newsletters_path / catalog_id

    def pages_dir(self, catalog_id: str) -> Path:
        return self.catalog_dir(catalog_id) / "pages"

    def cover_path(self, catalog_id: str) -> Path:
        return self.catalog_dir(catalog_id) / COVER_FILENAME

    def page_path(self, catalog_id: str, page_number: int) -> Path:
        return self.pages_dir(catalog_id) / page_filename(page_number)

    def prepare_catalog_dirs(self, catalog_id: str) -> Path:
        pages_dir = self.pages_dir(catalog_id)
        pages_dir.mkdir(parents=True, exist_ok=True)
        return pages_dir

    def clear_pages(self, catalog_id: str) -> int:
        """Removes page images left over from an earlier run so gaps in this run stay visible."""
        removed = 0
        pages_dir = self.pages_dir(catalog_id)
        if not pages_dir.exists():
            return removed
        for old in pages_dir.glob("page-*.jpg"):
            old.unlink()
            removed += 1
        if removed:
            logger.debug("Removed %d page images from a previous run of %s", removed, catalog_id)
        return removed

    def load_catalogs(self) -> List[Dict[str, Any]]:
        """Loads the catalog registry. A missing file is an empty registry."""
        if not self.registry_path.exists():
            logger.debug("No catalog registry at %s yet.", self.registry_path)
            return []
        try:
            with self.registry_path.open("r", encoding="utf-8") as f:
                records = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error("Error reading catalog registry %s: %s", self.registry_path, e)
            raise RegistryError(self.registry_path, str(e)) from e
        if not isinstance(records, list):
            raise RegistryError(self.registry_path, f"expected a JSON array, got {type(records).__name__}")
        return records

    def save_catalogs(self, records: List[Dict[str, Any]]) -> Path:
        """
        Overwrites the registry with `records`. The JSON is written to a temporary
        file in the same directory and renamed over the old one, so readers see
        either the previous registry or the new one, never a half-written file.
        """
        fd, tmp_name = tempfile.mkstemp(prefix=".newsletters-", suffix=".json", dir=self.newsletters_path)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.registry_path)
        except Exception as e:
            logger.error("Failed to save catalog registry to %s: %s", self.registry_path, e, exc_info=True)
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            if isinstance(e, OSError):
                raise RegistryError(self.registry_path, str(e)) from e
            raise
        logger.info("Saved %d catalogs to: %s", len(records), self.registry_path.name)
        return self.registry_path

    def upsert_catalog(self, catalog: Catalog) -> Path:
        """Replaces the record with the same id (or appends a new one) and rewrites the registry."""
        record = catalog.to_record()
        records = self.load_catalogs()
        for i, existing in enumerate(records):
            if existing.get("id") == catalog.id:
                records[i] = record
                break
        else:
            records.append(record)
        return self.save_catalogs(records)

    def get_catalog(self, catalog_id: str) -> Optional[Catalog]:
        for record in self.load_catalogs():
            if record.get("id") == catalog_id:
                return Catalog.from_record(record)
        return None

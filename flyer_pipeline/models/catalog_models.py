# flyer_pipeline/models/catalog_models.py

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..errors import ConfigError, MalformedURL
from ..utils.url_templater import PAGE_PATTERN, extract_page_index


def _first(data: Dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = data.get(key)
        if value:
            return str(value)
    return ""


@dataclass(frozen=True)
class CatalogSpec:
    """
    The declarative description of one remote catalog. Loaded once per run and
    never modified; the page range is derived from the first and last page URLs.
    """
    id: str
    cover_url: str
    first_page_url: str
    last_page_url: str
    store: str = ""
    title: str = ""
    valid_from: str = ""
    valid_until: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CatalogSpec":
        """Builds a spec from an on-disk definition (snake_case or camelCase keys)."""
        catalog_id = _first(data, "id")
        first_page = _first(data, "first_page", "firstPageURL", "first_page_url")
        last_page = _first(data, "last_page", "lastPageURL", "last_page_url")
        if not catalog_id or not first_page or not last_page:
            raise ConfigError(f"catalog definition needs id, first_page and last_page: {sorted(data)}")
        return cls(
            id=catalog_id,
            cover_url=_first(data, "cover_image", "coverImageURL", "cover_url"),
            first_page_url=first_page,
            last_page_url=last_page,
            store=_first(data, "store"),
            title=_first(data, "title"),
            valid_from=_first(data, "valid_from", "validFrom"),
            valid_until=_first(data, "valid_until", "validUntil"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """The on-disk definition shape read back by `from_dict`. Empty optional fields are left out."""
        data = {
            "id": self.id,
            "cover_image": self.cover_url,
            "first_page": self.first_page_url,
            "last_page": self.last_page_url,
        }
        for key in ("store", "title", "valid_from", "valid_until"):
            if getattr(self, key):
                data[key] = getattr(self, key)
        return data

    @property
    def first_page_index(self) -> int:
        return extract_page_index(self.first_page_url, PAGE_PATTERN)

    @property
    def last_page_index(self) -> int:
        return extract_page_index(self.last_page_url, PAGE_PATTERN)

    def validate(self) -> None:
        """Raises MalformedURL if the page range cannot be computed."""
        first, last = self.first_page_index, self.last_page_index
        if first > last:
            raise MalformedURL(self.last_page_url, f"last page {last} comes before first page {first}")

    def page_range(self) -> range:
        self.validate()
        return range(self.first_page_index, self.last_page_index + 1)


@dataclass(frozen=True)
class CatalogPage:
    page_number: int
    image_url: str
    image_path: str


@dataclass(frozen=True)
class PageFailure:
    page_number: int
    stage: str
    reason: str


@dataclass
class Catalog:
    """The result of one successful run, written to the registry as a whole."""
    id: str
    store: str
    title: str
    valid_from: str
    valid_until: str
    cover_image_path: str
    pages: List[CatalogPage] = field(default_factory=list)
    pages_expected: int = 0
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def completeness(self) -> float:
        if not self.pages_expected:
            return 0.0
        return round(len(self.pages) / self.pages_expected, 4)

    @property
    def page_numbers(self) -> List[int]:
        return [page.page_number for page in self.pages]

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "store": self.store,
            "title": self.title,
            "validFrom": self.valid_from,
            "validUntil": self.valid_until,
            "coverImagePath": self.cover_image_path,
            "pages": [
                {"pageNumber": p.page_number, "imagePath": p.image_path, "imageUrl": p.image_url}
                for p in self.pages
            ],
            "pagesExpected": self.pages_expected,
            "completeness": self.completeness,
            "lastUpdated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Catalog":
        pages = [
            CatalogPage(
                page_number=int(p["pageNumber"]),
                image_url=p.get("imageUrl", ""),
                image_path=p.get("imagePath", ""),
            )
            for p in record.get("pages", [])
        ]
        last_updated = record.get("lastUpdated")
        return cls(
            id=record["id"],
            store=record.get("store", ""),
            title=record.get("title", ""),
            valid_from=record.get("validFrom", ""),
            valid_until=record.get("validUntil", ""),
            cover_image_path=record.get("coverImagePath", ""),
            pages=pages,
            pages_expected=int(record.get("pagesExpected", len(pages))),
            last_updated=datetime.fromisoformat(last_updated) if last_updated else datetime.now(timezone.utc),
        )


@dataclass
class PartialFailureReport:
    """A catalog that was persisted with some pages (or the cover) missing."""
    catalog: Catalog
    failures: List[PageFailure] = field(default_factory=list)
    cover_error: Optional[str] = None

    @property
    def failed_pages(self) -> List[int]:
        return sorted({f.page_number for f in self.failures})

# flyer_pipeline/pipeline/assembler.py
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from .. import config
from ..delegates import COVER_FILENAME, FileManagerDelegate, page_filename
from ..models import Catalog, CatalogPage, CatalogSpec, PageState, PageTask

logger = logging.getLogger(__name__)

# e.g. 'perioada-13-10-19-10-2025' -> valid 2025-10-13 until 2025-10-19
DATE_RANGE_PATTERN = re.compile(r"(\d{2})-(\d{2})-(\d{2})-(\d{2})-(\d{4})")


def parse_validity(*texts: str) -> Tuple[str, str]:
    """Finds a DD-MM-DD-MM-YYYY date range in the first text that has one; returns ISO dates."""
    for text in texts:
        match = DATE_RANGE_PATTERN.search(text or "")
        if not match:
            continue
        from_day, from_month, until_day, until_month, year = match.groups()
        return f"{year}-{from_month}-{from_day}", f"{year}-{until_month}-{until_day}"
    return "", ""


def _store_name(spec: CatalogSpec) -> str:
    if spec.store:
        return spec.store
    return spec.id.split("-", 1)[0].capitalize()


def _default_title(store: str, valid_from: str, valid_until: str) -> str:
    if valid_from and valid_until:
        return f"{store} catalog {valid_from} - {valid_until}"
    return f"{store} catalog"


def ordered_pages(tasks: Iterable[PageTask]) -> List[PageTask]:
    """Finished tasks sorted by page number, keeping only the first task for a repeated number."""
    ordered: List[PageTask] = []
    seen = set()
    for task in sorted(tasks, key=lambda t: t.page_index):
        if task.state is not PageState.DONE or task.page_index in seen:
            continue
        seen.add(task.page_index)
        ordered.append(task)
    return ordered


def assemble_catalog(
    spec: CatalogSpec,
    completed: Iterable[PageTask],
    cover_path: Optional[Path],
    pages_expected: int,
    public_root: str = config.PUBLIC_ROOT,
) -> Catalog:
    """Builds the Catalog record for a finished run, with image paths as the API layer serves them."""
    base = f"{public_root.rstrip('/')}/{spec.id}"
    pages = [
        CatalogPage(
            page_number=task.page_index,
            image_url=task.image_url or "",
            image_path=f"{base}/pages/{page_filename(task.page_index)}",
        )
        for task in ordered_pages(completed)
    ]

    valid_from, valid_until = spec.valid_from, spec.valid_until
    if not (valid_from and valid_until):
        parsed_from, parsed_until = parse_validity(spec.id, spec.first_page_url, spec.cover_url)
        valid_from = valid_from or parsed_from
        valid_until = valid_until or parsed_until
    store = _store_name(spec)

    catalog = Catalog(
        id=spec.id,
        store=store,
        title=spec.title or _default_title(store, valid_from, valid_until),
        valid_from=valid_from,
        valid_until=valid_until,
        cover_image_path=f"{base}/{COVER_FILENAME}" if cover_path else "",
        pages=pages,
        pages_expected=max(pages_expected, len(pages)),
        last_updated=datetime.now(timezone.utc),
    )
    logger.debug("Assembled %s with pages %s", catalog.id, catalog.page_numbers)
    return catalog


def persist_catalog(catalog: Catalog, file_manager: FileManagerDelegate) -> Path:
    """Writes the catalog into the registry, replacing any earlier record with the same id."""
    path = file_manager.upsert_catalog(catalog)
    logger.info("Catalog %s saved with %d/%d pages (%.0f%%).",
                catalog.id, len(catalog.pages), catalog.pages_expected, catalog.completeness * 100)
    return path

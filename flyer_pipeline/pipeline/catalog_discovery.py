# flyer_pipeline/pipeline/catalog_discovery.py
import logging
import re
from typing import List, Optional, Sequence
from urllib.parse import urlparse

from bs4 import BeautifulSoup

from .. import config
from ..delegates import WebScraperDelegate
from ..models import CatalogSpec, RenderedDocument
from .assembler import parse_validity
from .image_locator import absolutize

logger = logging.getLogger(__name__)


def store_from_url(url: str) -> str:
    """'https://www.lidl.ro/...' -> 'Lidl'."""
    host = urlparse(url).netloc.lower()
    if host.startswith("www."):
        host = host[len("www."):]
    return host.split(".", 1)[0].capitalize()


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def extract_catalog_links(
    document: RenderedDocument,
    link_pattern: str = config.DISCOVERY_LINK_PATTERN,
    required: Sequence[str] = tuple(config.DISCOVERY_REQUIRED),
    excluded: Sequence[str] = tuple(config.DISCOVERY_EXCLUDED),
    strip_patterns: Sequence[str] = tuple(config.DISCOVERY_STRIP_PATTERNS),
) -> List[str]:
    """
    Collects catalog viewer links from a rendered listing page, in document order.

    Links are made absolute against the listing's host and stripped of viewer
    segments (article anchors, page numbers), so a catalog linked from several
    places on the listing is returned once. A link is kept only if its path
    matches `link_pattern`, it contains one of `required` (when any are given)
    and none of `excluded`.
    """
    if not document.html:
        return []
    path_regex = re.compile(link_pattern)
    strip_regexes = [re.compile(p) for p in strip_patterns]

    soup = BeautifulSoup(document.html, "lxml")
    found: List[str] = []
    for anchor in soup.find_all("a", href=True):
        url = absolutize(anchor["href"], document.url)
        if not path_regex.search(urlparse(url).path):
            continue
        for regex in strip_regexes:
            url = regex.sub("", url)
        url = url.split("#", 1)[0].split("?", 1)[0].rstrip("/")
        if required and not any(token in url for token in required):
            continue
        if any(token in url for token in excluded):
            continue
        if url not in found:
            found.append(url)
    logger.debug("Found %d catalog links on %s", len(found), document.url)
    return found


def spec_for_catalog(
    catalog_url: str,
    store: str,
    max_pages: int = config.DISCOVERY_MAX_PAGES,
    page_path: str = config.DISCOVERY_PAGE_PATH,
) -> CatalogSpec:
    """Builds a definition covering pages 1..max_pages of a discovered catalog."""
    if max_pages < 1:
        raise ValueError(f"max_pages must be at least 1, got {max_pages}")
    segment = urlparse(catalog_url).path.rstrip("/").rsplit("/", 1)[-1]
    valid_from, valid_until = parse_validity(catalog_url)
    return CatalogSpec(
        id=f"{_slug(store)}-{_slug(segment)}",
        cover_url="",
        first_page_url=catalog_url + page_path.format(page=1),
        last_page_url=catalog_url + page_path.format(page=max_pages),
        store=store,
        valid_from=valid_from,
        valid_until=valid_until,
    )


async def discover_catalogs(
    renderer: WebScraperDelegate,
    listing_url: str,
    store: Optional[str] = None,
    settle_delay_ms: int = config.SETTLE_DELAY_MS,
    max_pages: int = config.DISCOVERY_MAX_PAGES,
    limit: Optional[int] = None,
) -> List[CatalogSpec]:
    """
    Renders a store's catalog listing page and returns one definition per catalog
    linked from it. A listing that cannot be rendered raises RenderError.
    """
    store = store or store_from_url(listing_url)
    logger.info("[bold blue]Discovering %s catalogs[/bold blue] on %s", store, listing_url)
    document = await renderer.render(listing_url, settle_delay_ms)

    links = extract_catalog_links(document)
    if limit is not None:
        links = links[:limit]
    specs = [spec_for_catalog(url, store, max_pages) for url in links]
    for spec in specs:
        logger.info("Discovered catalog '%s'", spec.id)
    if not specs:
        logger.warning("No catalog links found on %s", listing_url)
    return specs

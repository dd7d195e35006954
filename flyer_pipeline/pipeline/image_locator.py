# flyer_pipeline/pipeline/image_locator.py
import logging
from typing import Iterable, List, Optional, Sequence
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from .. import config
from ..errors import NoImageFound
from ..models import RenderedDocument

logger = logging.getLogger(__name__)


def absolutize(src: str, page_url: str) -> str:
    """Resolves a relative image source against the scheme and host of the page it came from."""
    src = src.strip()
    if urlparse(src).scheme in ("http", "https"):
        return src
    page = urlparse(page_url)
    return urljoin(f"{page.scheme}://{page.netloc}/", src)


def _is_usable(src: Optional[str]) -> bool:
    return bool(src) and not src.strip().startswith("data:")


def _is_vector(src: str) -> bool:
    return urlparse(src).path.lower().endswith(".svg")


class LocatorStrategy:
    """One way of finding a page's dominant image in a rendered document."""

    name = "strategy"

    def locate(self, document: RenderedDocument) -> Optional[str]:
        raise NotImplementedError


class SizeRankedStrategy(LocatorStrategy):
    """
    Picks the largest measured image. Catalog pages are the single big visual on
    an otherwise sparse page, so anything not larger than `min_dimension` in both
    directions (icons, logos, ads) is ignored.
    """

    name = "size-ranked"

    def __init__(self, min_dimension: int = config.MIN_IMAGE_DIMENSION):
        self.min_dimension = min_dimension

    def locate(self, document: RenderedDocument) -> Optional[str]:
        candidates = [
            img for img in document.images
            if _is_usable(img.src) and img.width > self.min_dimension and img.height > self.min_dimension
        ]
        logger.debug("%d of %d measured images exceed %dpx on %s",
                     len(candidates), len(document.images), self.min_dimension, document.url)
        if not candidates:
            return None
        # max() keeps the first of equally large images, i.e. document order.
        best = max(candidates, key=lambda img: img.area)
        return absolutize(best.src, document.url)


class SelectorChainStrategy(LocatorStrategy):
    """Walks an ordered list of CSS selectors and returns the first usable raster image."""

    name = "selector-chain"

    def __init__(self, selectors: Sequence[str] = tuple(config.LOCATOR_SELECTORS)):
        self.selectors = list(selectors)

    def _sources(self, element) -> Iterable[str]:
        images = [element] if element.name == "img" else element.find_all("img")
        for img in images:
            yield img.get("src") or img.get("data-src") or ""

    def locate(self, document: RenderedDocument) -> Optional[str]:
        if not document.html:
            return None
        soup = BeautifulSoup(document.html, "lxml")
        for selector in self.selectors:
            for element in soup.select(selector):
                for src in self._sources(element):
                    if _is_usable(src) and not _is_vector(src):
                        logger.debug("Selector '%s' matched %s", selector, src)
                        return absolutize(src, document.url)
        return None


class AssetHostScanStrategy(LocatorStrategy):
    """
    Bulk variant used when a whole catalog is rendered in one view: collects every
    image served from a known asset host, deduplicated by exact URL.
    """

    name = "asset-host-scan"

    def __init__(self, hosts: Sequence[str] = tuple(config.ASSET_HOSTS)):
        self.hosts = list(hosts)

    def _matches(self, src: str) -> bool:
        return any(host in src for host in self.hosts)

    def collect(self, document: RenderedDocument) -> List[str]:
        raw_sources = [img.src for img in document.images]
        if document.html:
            soup = BeautifulSoup(document.html, "lxml")
            raw_sources.extend(img.get("src") or img.get("data-src") or "" for img in soup.find_all("img"))

        found: List[str] = []
        seen = set()
        for src in raw_sources:
            if not _is_usable(src):
                continue
            url = absolutize(src, document.url)
            if self._matches(url) and url not in seen:
                seen.add(url)
                found.append(url)
        logger.debug("Asset host scan found %d images on %s", len(found), document.url)
        return found

    def locate(self, document: RenderedDocument) -> Optional[str]:
        found = self.collect(document)
        return found[0] if found else None


class ImageLocator:
    """Tries each strategy in order; the first one that yields a URL wins."""

    def __init__(self, strategies: Sequence[LocatorStrategy]):
        self.strategies = list(strategies)

    @classmethod
    def default(cls) -> "ImageLocator":
        return cls([
            SizeRankedStrategy(config.MIN_IMAGE_DIMENSION),
            SelectorChainStrategy(config.LOCATOR_SELECTORS),
        ])

    def locate(self, document: RenderedDocument) -> str:
        for strategy in self.strategies:
            url = strategy.locate(document)
            if url:
                logger.debug("Image for %s located by %s strategy: %s", document.url, strategy.name, url)
                return url
        raise NoImageFound(document.url)

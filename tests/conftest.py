import asyncio
from pathlib import Path
from typing import Dict, List, Optional, Union

import pytest

from flyer_pipeline.delegates import FileManagerDelegate
from flyer_pipeline.errors import DownloadError, RenderError
from flyer_pipeline.models import CatalogSpec, ImageInfo, RenderedDocument

BASE = "https://flyers.example.com/weekly-13-10-19-10-2025/view/flyer/page"


def page_doc(url: str, image_src: str, width: int = 1200, height: int = 1600) -> RenderedDocument:
    """A rendered page with one large catalog image plus a small logo."""
    return RenderedDocument(
        url=url,
        html=f'<html><body><img src="/logo.png"><main><img src="{image_src}"></main></body></html>',
        images=[ImageInfo("/logo.png", 120, 40), ImageInfo(image_src, width, height)],
    )


class FakeRenderer:
    """Serves pre-built documents by URL; an Exception value is raised instead. Delays are per URL."""

    def __init__(self, pages: Dict[str, Union[RenderedDocument, Exception]], delays: Optional[Dict[str, float]] = None):
        self.pages = pages
        self.delays = delays or {}
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def render(self, url: str, settle_delay_ms: int) -> RenderedDocument:
        self.calls.append(url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(url, 0))
            result = self.pages.get(url)
            if result is None:
                raise RenderError(url, "no such page")
            if isinstance(result, Exception):
                raise result
            return result
        finally:
            self.in_flight -= 1


class FakeDownloader:
    """Writes a few bytes per download. Delays let tests scramble the completion order."""

    def __init__(self, failing: Optional[Dict[str, DownloadError]] = None, delays: Optional[Dict[str, float]] = None):
        self.failing = failing or {}
        self.delays = delays or {}
        self.calls: List[str] = []
        self.completed: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def download_image(self, url: str, destination: Path) -> Optional[DownloadError]:
        self.calls.append(url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(url, 0))
            if url in self.failing:
                return self.failing[url]
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(url.encode("utf-8"))
            self.completed.append(url)
            return None
        finally:
            self.in_flight -= 1


def make_spec(last_page: int = 5, first_page: int = 1, cover: str = "") -> CatalogSpec:
    return CatalogSpec(
        id="acme-13-10-19-10-2025",
        cover_url=cover,
        first_page_url=f"{BASE}/{first_page}",
        last_page_url=f"{BASE}/{last_page}",
        store="Acme",
    )


def distinct_pages(numbers, skip=()) -> Dict[str, RenderedDocument]:
    return {
        f"{BASE}/{n}": page_doc(f"{BASE}/{n}", f"https://cdn.example.com/flyer/p{n}.jpg")
        for n in numbers
        if n not in skip
    }


@pytest.fixture
def file_manager(tmp_path) -> FileManagerDelegate:
    return FileManagerDelegate(base_path=tmp_path)

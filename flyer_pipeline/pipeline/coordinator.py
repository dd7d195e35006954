# flyer_pipeline/pipeline/coordinator.py
import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Dict, List, Optional, Tuple

from .. import config
from ..delegates import DownloaderDelegate, FileManagerDelegate, WebScraperDelegate
from ..errors import DownloadError, NoImageFound, RenderError
from ..models import CatalogSpec, PageFailure, PageState, PageTask
from ..utils.url_templater import build_page_url
from .image_locator import AssetHostScanStrategy, ImageLocator
from .page_worker import PageWorker

logger = logging.getLogger(__name__)


@dataclass
class AcquisitionOutcome:
    """Everything one coordinator run produced, before it is turned into a Catalog."""
    spec: CatalogSpec
    tasks: List[PageTask] = field(default_factory=list)
    failures: List[PageFailure] = field(default_factory=list)
    cover_path: Optional[Path] = None
    cover_error: Optional[str] = None
    pages_expected: int = 0
    stopped_early: bool = False

    @property
    def completed(self) -> List[PageTask]:
        return [task for task in self.tasks if task.state is PageState.DONE]


def _failure_from(task: PageTask) -> PageFailure:
    reason = str(task.error) if task.error else task.failed_stage or "failed"
    return PageFailure(page_number=task.page_index, stage=task.failed_stage or "unknown", reason=reason)


class _DownloadPool:
    """
    Bounded pool for page downloads. Tasks are started as soon as their image is
    located; finished tasks are collected under a lock in completion order.
    """
    def __init__(self, worker: PageWorker, downloader: DownloaderDelegate, width: int):
        self.worker = worker
        self.downloader = downloader
        self.semaphore = asyncio.Semaphore(width)
        self.lock = asyncio.Lock()
        self.finished: List[PageTask] = []
        self.running: Dict["asyncio.Task[None]", PageTask] = {}

    async def record(self, task: PageTask) -> None:
        async with self.lock:
            self.finished.append(task)

    async def _download(self, task: PageTask, destination: Path) -> None:
        async with self.semaphore:
            await self.worker.fetch(task, self.downloader, destination)
        if task.state is PageState.FAILED:
            logger.warning("Page %d: %s", task.page_index, task.error)
        else:
            logger.info("Page %d downloaded: [green]%s[/green]", task.page_index, destination.name)
        await self.record(task)

    def submit(self, task: PageTask, destination: Path) -> None:
        self.running[asyncio.create_task(self._download(task, destination))] = task

    async def drain(self, timeout: float) -> None:
        """Waits for every running download; whatever is still running after `timeout` is cancelled."""
        if not self.running:
            return
        done, pending = await asyncio.wait(self.running.keys(), timeout=max(0.0, timeout))
        for future in pending:
            future.cancel()
        if pending:
            logger.warning("Run deadline reached with %d downloads still running, cancelling them.", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)
            for future in pending:
                task = self.running[future]
                if not task.is_terminal:
                    task.fail("deadline", DownloadError(task.image_url or "", network_error="run deadline exceeded"))
                    await self.record(task)
        for future in done:
            # Anything other than a page-local failure is a bug and should surface.
            future.result()


class AcquisitionCoordinator:
    """
    Drives a catalog's page range to completion.

    Rendering and locating run strictly one page at a time in ascending order,
    because they share the single browser session and hammering the same site
    with parallel navigations gets us blocked. Every newly located image is handed
    to a bounded download pool right away, so downloads overlap the following
    renders. Results are put back into page order once everything has finished.
    """
    def __init__(
        self,
        renderer: WebScraperDelegate,
        downloader: DownloaderDelegate,
        file_manager: FileManagerDelegate,
        locator: Optional[ImageLocator] = None,
        settle_delay_ms: int = config.SETTLE_DELAY_MS,
        page_delay_s: float = config.PAGE_DELAY_S,
        download_concurrency: int = config.DOWNLOAD_CONCURRENCY,
        stale_page_limit: int = config.STALE_PAGE_LIMIT,
        deadline_s: float = config.RUN_DEADLINE_S,
        asset_hosts: Optional[List[str]] = None,
    ):
        if download_concurrency < 1:
            raise ValueError(f"download_concurrency must be at least 1, got {download_concurrency}")
        if stale_page_limit < 0:
            raise ValueError(f"stale_page_limit must not be negative, got {stale_page_limit}")
        self.renderer = renderer
        self.downloader = downloader
        self.file_manager = file_manager
        self.locator = locator or ImageLocator.default()
        self.settle_delay_ms = settle_delay_ms
        self.page_delay_s = page_delay_s
        self.download_concurrency = download_concurrency
        self.stale_page_limit = stale_page_limit
        self.deadline_s = deadline_s
        self.bulk_strategy = AssetHostScanStrategy(asset_hosts if asset_hosts is not None else config.ASSET_HOSTS)
        self.worker = PageWorker(renderer, self.locator, settle_delay_ms)

    async def _acquire_cover(self, spec: CatalogSpec) -> Tuple[Optional[Path], Optional[str]]:
        """Renders the cover URL on its own and downloads its dominant image. Never raises."""
        logger.info("Acquiring cover for %s from %s", spec.id, spec.cover_url)
        try:
            document = await self.renderer.render(spec.cover_url, self.settle_delay_ms)
            image_url = self.locator.locate(document)
        except (RenderError, NoImageFound) as e:
            logger.warning("Cover for %s not available: %s", spec.id, e)
            return None, str(e)
        return await self._download_cover(spec, image_url)

    async def _download_cover(self, spec: CatalogSpec, image_url: str) -> Tuple[Optional[Path], Optional[str]]:
        destination = self.file_manager.cover_path(spec.id)
        error = await self.downloader.download_image(image_url, destination)
        if error:
            logger.warning("Cover for %s not downloaded: %s", spec.id, error)
            return None, str(error)
        logger.info("Cover for %s saved to %s", spec.id, destination.name)
        return destination, None

    async def _cover_before_deadline(
        self, spec: CatalogSpec, attempt: Awaitable[Tuple[Optional[Path], Optional[str]]], deadline: float
    ) -> Tuple[Optional[Path], Optional[str]]:
        """Runs a cover attempt bounded by the time left in the run."""
        remaining = deadline - asyncio.get_running_loop().time()
        try:
            return await asyncio.wait_for(attempt, timeout=max(0.0, remaining))
        except asyncio.TimeoutError:
            logger.warning("Run deadline reached while acquiring the cover for %s.", spec.id)
            return None, "run deadline exceeded"

    async def run(self, spec: CatalogSpec) -> AcquisitionOutcome:
        """
        Acquires every page of `spec`. Only a malformed first/last page URL raises
        (MalformedURL); every other problem is recorded on the outcome.
        """
        page_range = spec.page_range()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.deadline_s

        self.file_manager.prepare_catalog_dirs(spec.id)
        self.file_manager.clear_pages(spec.id)
        outcome = AcquisitionOutcome(spec=spec, pages_expected=len(page_range))
        pool = _DownloadPool(self.worker, self.downloader, self.download_concurrency)

        logger.info("[bold blue]Acquiring %s[/bold blue]: pages %d-%d", spec.id, page_range.start, page_range.stop - 1)
        if spec.cover_url:
            outcome.cover_path, outcome.cover_error = await self._cover_before_deadline(
                spec, self._acquire_cover(spec), deadline
            )

        previous_url: Optional[str] = None
        first_image_url: Optional[str] = None
        last_distinct_index: Optional[int] = None
        misses = 0

        for position, index in enumerate(page_range):
            remaining = deadline - loop.time()
            if remaining <= 0:
                skipped = list(page_range[position:])
                logger.warning("Run deadline reached for %s, %d pages not attempted.", spec.id, len(skipped))
                outcome.failures.extend(
                    PageFailure(page_number=i, stage="deadline", reason="not attempted before the run deadline")
                    for i in skipped
                )
                break

            task = PageTask(page_index=index, page_url=build_page_url(spec.first_page_url, index))
            outcome.tasks.append(task)
            logger.info("Resolving page %d/%d: %s", index, page_range.stop - 1, task.page_url)
            try:
                await asyncio.wait_for(self.worker.resolve(task), timeout=remaining)
            except asyncio.TimeoutError:
                if task.state is PageState.PENDING:
                    # Cancelled before the render call was even issued.
                    task.advance(PageState.RENDERING)
                task.fail("deadline", RenderError(task.page_url, "run deadline exceeded"))

            if task.state is PageState.FAILED:
                misses += 1
                previous_url = None
                await pool.record(task)
            elif task.image_url == previous_url:
                # Same image as the page before: the site is serving a stale page.
                # The run of identical pages counts from the page that first showed it.
                misses = misses + 1 if misses else 2
                logger.info("Page %d repeats the previous page's image, skipping it.", index)
                task.fail("duplicate")
                await pool.record(task)
            else:
                misses = 0
                previous_url = task.image_url
                last_distinct_index = index
                first_image_url = first_image_url or task.image_url
                pool.submit(task, self.file_manager.page_path(spec.id, index))

            if self.stale_page_limit and misses >= self.stale_page_limit:
                logger.info("%d consecutive empty or repeated pages, stopping %s at page %d.", misses, spec.id, index)
                outcome.stopped_early = True
                break

            if self.page_delay_s > 0 and position < len(page_range) - 1:
                await asyncio.sleep(self.page_delay_s)

        if outcome.stopped_early:
            # The real catalog most likely ends at the last page that showed something new.
            if last_distinct_index is None:
                outcome.pages_expected = 0
            else:
                outcome.pages_expected = last_distinct_index - page_range.start + 1

        if not spec.cover_url and first_image_url:
            outcome.cover_path, outcome.cover_error = await self._cover_before_deadline(
                spec, self._download_cover(spec, first_image_url), deadline
            )
        elif not spec.cover_url:
            outcome.cover_error = "no cover URL and no page image to fall back on"

        await pool.drain(deadline - loop.time())
        self._collect(outcome, pool)
        return outcome

    async def run_bulk(self, spec: CatalogSpec) -> AcquisitionOutcome:
        """
        Whole-catalog variant: renders the first page once and takes every image
        served from a known asset host, in document order, as the catalog's pages.
        """
        page_range = spec.page_range()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.deadline_s

        self.file_manager.prepare_catalog_dirs(spec.id)
        self.file_manager.clear_pages(spec.id)
        outcome = AcquisitionOutcome(spec=spec, pages_expected=len(page_range))
        pool = _DownloadPool(self.worker, self.downloader, self.download_concurrency)

        logger.info("[bold blue]Acquiring %s in bulk[/bold blue] from %s", spec.id, spec.first_page_url)
        if spec.cover_url:
            outcome.cover_path, outcome.cover_error = await self._cover_before_deadline(
                spec, self._acquire_cover(spec), deadline
            )

        try:
            document = await asyncio.wait_for(
                self.renderer.render(spec.first_page_url, self.settle_delay_ms),
                timeout=max(0.0, deadline - loop.time()),
            )
        except asyncio.TimeoutError:
            error, stage = RenderError(spec.first_page_url, "run deadline exceeded"), "deadline"
        except RenderError as e:
            error, stage = e, "render"
        else:
            error = None
        if error:
            logger.error("Bulk scan of %s failed: %s", spec.id, error)
            outcome.failures.append(PageFailure(page_number=page_range.start, stage=stage, reason=str(error)))
            if not spec.cover_url:
                outcome.cover_error = str(error)
            return outcome

        image_urls = self.bulk_strategy.collect(document)
        if len(image_urls) > len(page_range):
            logger.info("Bulk scan found %d images, keeping the first %d.", len(image_urls), len(page_range))
            image_urls = image_urls[:len(page_range)]
        logger.info("Bulk scan of %s found %d page images.", spec.id, len(image_urls))

        for index, image_url in zip(page_range, image_urls):
            task = PageTask(page_index=index, page_url=document.url)
            task.advance(PageState.RENDERING)
            task.image_url = image_url
            task.advance(PageState.LOCATED)
            outcome.tasks.append(task)
            pool.submit(task, self.file_manager.page_path(spec.id, index))

        for index in page_range[len(image_urls):]:
            outcome.failures.append(PageFailure(page_number=index, stage="locate", reason="no image in bulk scan"))

        if not spec.cover_url:
            if image_urls:
                outcome.cover_path, outcome.cover_error = await self._cover_before_deadline(
                    spec, self._download_cover(spec, image_urls[0]), deadline
                )
            else:
                outcome.cover_error = "bulk scan found no images"

        await pool.drain(deadline - loop.time())
        self._collect(outcome, pool)
        return outcome

    def _collect(self, outcome: AcquisitionOutcome, pool: _DownloadPool) -> None:
        failed = [task for task in pool.finished if task.state is PageState.FAILED]
        outcome.failures.extend(_failure_from(task) for task in failed)
        outcome.failures.sort(key=lambda f: f.page_number)
        done = sum(1 for task in pool.finished if task.state is PageState.DONE)
        logger.info("%s: %d pages downloaded, %d failed.", outcome.spec.id, done, len(failed))

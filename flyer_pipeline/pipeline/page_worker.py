# flyer_pipeline/pipeline/page_worker.py
import logging
from pathlib import Path

from ..delegates import DownloaderDelegate, WebScraperDelegate
from ..errors import NoImageFound, RenderError
from ..models import PageState, PageTask
from .image_locator import ImageLocator

logger = logging.getLogger(__name__)


class PageWorker:
    """
    Moves a single PageTask through render -> locate -> fetch. Page-local errors
    end up on the task (state FAILED), they are never raised to the caller.
    """
    def __init__(self, renderer: WebScraperDelegate, locator: ImageLocator, settle_delay_ms: int):
        self.renderer = renderer
        self.locator = locator
        self.settle_delay_ms = settle_delay_ms

    async def resolve(self, task: PageTask) -> PageTask:
        """PENDING -> RENDERING -> LOCATED, or FAILED when rendering or locating fails."""
        task.advance(PageState.RENDERING)
        try:
            document = await self.renderer.render(task.page_url, self.settle_delay_ms)
        except RenderError as e:
            logger.warning("Page %d: %s", task.page_index, e)
            task.fail("render", e)
            return task

        try:
            task.image_url = self.locator.locate(document)
        except NoImageFound as e:
            logger.warning("Page %d: %s", task.page_index, e)
            task.fail("locate", e)
            return task

        task.advance(PageState.LOCATED)
        logger.debug("Page %d located: %s", task.page_index, task.image_url)
        return task

    async def fetch(self, task: PageTask, downloader: DownloaderDelegate, destination: Path) -> PageTask:
        """LOCATED -> FETCHING -> DONE, or FAILED when the download fails."""
        task.advance(PageState.FETCHING)
        error = await downloader.download_image(task.image_url, destination)
        if error:
            task.fail("fetch", error)
            return task
        task.local_path = destination
        task.advance(PageState.DONE)
        return task

# flyer_pipeline/delegates/downloader_delegate.py
import logging
from pathlib import Path
from typing import Optional

import httpx

from ..errors import DownloadError

logger = logging.getLogger(__name__)


class DownloaderDelegate:
    """Downloads resolved catalog images to disk. Failures are returned, never raised."""
    def __init__(self, user_agent: str, timeout: Optional[float] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.user_agent = user_agent
        self.timeout = timeout
        # Tests hand in an httpx.MockTransport here.
        self.transport = transport
        self.client: Optional[httpx.AsyncClient] = None  # Will be initialized in __aenter__

    async def __aenter__(self):
        timeout = httpx.Timeout(self.timeout) if self.timeout else httpx.Timeout(5.0)
        self.client = httpx.AsyncClient(
            headers={"User-Agent": self.user_agent},
            follow_redirects=True,
            timeout=timeout,
            transport=self.transport,
        )
        logger.debug("DownloaderDelegate httpx.AsyncClient initialized.")
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.client:
            await self.client.aclose()  # Use aclose() for async clients
            logger.debug("DownloaderDelegate httpx.AsyncClient closed.")

    async def download_image(self, url: str, destination: Path) -> Optional[DownloadError]:
        """
        Streams `url` to `destination`, replacing any existing file.

        The body is written to a sibling '.part' file first and only moved into
        place once the whole response arrived, so a failed download never leaves a
        truncated image under the final name. Returns None on success, otherwise
        the DownloadError describing what went wrong.
        """
        if not self.client:
            logger.error("HTTP client not initialized. Cannot download %s.", url)
            return DownloadError(url, network_error="client not initialized")

        destination.parent.mkdir(parents=True, exist_ok=True)
        partial_path = destination.with_name(destination.name + ".part")
        try:
            async with self.client.stream("GET", url) as response:
                if not response.is_success:
                    logger.warning("HTTP %s downloading %s", response.status_code, url)
                    return DownloadError(url, status=response.status_code)
                with partial_path.open("wb") as f:
                    async for chunk in response.aiter_bytes():
                        f.write(chunk)
            partial_path.replace(destination)
            logger.debug("Downloaded %s -> %s", url, destination.name)
            return None
        except httpx.HTTPError as e:
            logger.warning("Network error downloading %s: %s", url, e)
            return DownloadError(url, network_error=str(e) or type(e).__name__)
        except OSError as e:
            logger.error("Could not write %s: %s", destination, e)
            return DownloadError(url, network_error=str(e))
        finally:
            # Left behind only when the stream failed, was rejected or was cancelled.
            if partial_path.exists():
                partial_path.unlink()

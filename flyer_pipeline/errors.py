# flyer_pipeline/errors.py
from typing import Optional


class AcquisitionError(Exception):
    """Base class for every error raised by the flyer pipeline."""


class ConfigError(AcquisitionError):
    """A catalog definition is missing or cannot be read."""


class MalformedURL(AcquisitionError):
    """The page-index marker could not be found (or found more than once) in a URL."""

    def __init__(self, url: str, message: str = "page index pattern not found"):
        self.url = url
        super().__init__(f"{message}: {url}")


class RenderError(AcquisitionError):
    """The page renderer could not load a page."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"failed to render {url}: {reason}")


class NoImageFound(AcquisitionError):
    """Every locator strategy came back empty for a rendered page."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"no catalog image found on {url}")


class DownloadError(AcquisitionError):
    """An image download failed, either with a bad status or a transport error."""

    def __init__(self, url: str, status: Optional[int] = None, network_error: Optional[str] = None):
        self.url = url
        self.status = status
        self.network_error = network_error
        if status is not None:
            detail = f"HTTP {status}"
        else:
            detail = network_error or "unknown error"
        super().__init__(f"download of {url} failed: {detail}")


class InvalidTransition(AcquisitionError):
    """A page task was asked to move to a state it cannot reach from its current one."""


class RegistryError(AcquisitionError):
    """The catalog registry file cannot be read, parsed or written."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"catalog registry {path}: {reason}")

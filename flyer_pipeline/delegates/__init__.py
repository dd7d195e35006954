# flyer_pipeline/delegates/__init__.py

# This file makes the delegate classes directly available from the 'delegates' package.
# Instead of: from flyer_pipeline.delegates.web_scraper_delegate import WebScraperDelegate
# We can now use: from flyer_pipeline.delegates import WebScraperDelegate

from .web_scraper_delegate import WebScraperDelegate
from .downloader_delegate import DownloaderDelegate
from .file_manager_delegate import COVER_FILENAME, FileManagerDelegate, page_filename
from .config_store_delegate import ConfigStoreDelegate

# flyer_pipeline/main.py
import logging
from pathlib import Path
from typing import List, Optional, Union

from rich.console import Console
from rich.table import Table

from . import config
from .delegates import ConfigStoreDelegate, DownloaderDelegate, FileManagerDelegate, WebScraperDelegate
from .errors import AcquisitionError
from .models import Catalog, CatalogSpec, PartialFailureReport
from .pipeline import AcquisitionCoordinator, assemble_catalog, discover_catalogs, persist_catalog

logger = logging.getLogger(__name__)


async def run_acquisition(
    spec: CatalogSpec,
    coordinator: AcquisitionCoordinator,
    file_manager: FileManagerDelegate,
    bulk: bool = False,
) -> Union[Catalog, PartialFailureReport]:
    """
    Acquires one catalog and writes it to the registry. Returns the Catalog when
    every attempted page and the cover succeeded, otherwise a PartialFailureReport
    wrapping the (still persisted) catalog and the per-page diagnostics.
    """
    outcome = await (coordinator.run_bulk(spec) if bulk else coordinator.run(spec))
    catalog = assemble_catalog(spec, outcome.completed, outcome.cover_path, outcome.pages_expected)
    persist_catalog(catalog, file_manager)

    if outcome.failures or outcome.cover_error:
        for failure in outcome.failures:
            logger.debug("%s page %d failed at %s: %s", spec.id, failure.page_number, failure.stage, failure.reason)
        return PartialFailureReport(catalog=catalog, failures=outcome.failures, cover_error=outcome.cover_error)
    return catalog


def _summary_table(results: List[Union[Catalog, PartialFailureReport]]) -> Table:
    table = Table(title="Catalog acquisition summary")
    table.add_column("Catalog")
    table.add_column("Pages", justify="right")
    table.add_column("Complete", justify="right")
    table.add_column("Cover")
    table.add_column("Failed pages")
    for result in results:
        catalog = result.catalog if isinstance(result, PartialFailureReport) else result
        failed = ", ".join(str(n) for n in result.failed_pages) if isinstance(result, PartialFailureReport) else ""
        table.add_row(
            catalog.id,
            f"{len(catalog.pages)}/{catalog.pages_expected}",
            f"{catalog.completeness:.0%}",
            "yes" if catalog.cover_image_path else "[red]no[/red]",
            failed,
        )
    return table


async def main(
    config_names: List[str],
    configs_path: Path = config.CONFIGS_PATH,
    data_path: Path = config.DATA_PATH,
    bulk: bool = False,
    download_concurrency: int = config.DOWNLOAD_CONCURRENCY,
    stale_page_limit: int = config.STALE_PAGE_LIMIT,
    deadline_s: float = config.RUN_DEADLINE_S,
    har_output_path: Optional[Path] = None,
    discover_url: Optional[str] = None,
    discover_limit: Optional[int] = None,
) -> List[Union[Catalog, PartialFailureReport]]:
    """
    The main orchestrator: acquires each named catalog in turn with one browser session.
    With `discover_url`, the catalogs linked from that listing page are saved as
    definitions and acquired as well.
    """
    config_store = ConfigStoreDelegate(configs_path)
    file_manager = FileManagerDelegate(base_path=data_path)

    specs: List[CatalogSpec] = []
    for name in config_names:
        try:
            specs.append(config_store.load(name))
        except AcquisitionError as e:
            logger.error("Skipping '%s': %s", name, e)

    if not specs and not discover_url:
        logger.error("No catalog definitions to process.")
        return []

    results: List[Union[Catalog, PartialFailureReport]] = []
    async with WebScraperDelegate(
        user_agent=config.USER_AGENT,
        viewport=config.VIEWPORT,
        timeout_ms=config.REQUEST_TIMEOUT,
        network_idle_timeout_ms=config.NETWORK_IDLE_TIMEOUT,
        har_output_path=har_output_path,
    ) as web_scraper, DownloaderDelegate(user_agent=config.USER_AGENT, timeout=config.DOWNLOAD_TIMEOUT) as downloader:
        coordinator = AcquisitionCoordinator(
            renderer=web_scraper,
            downloader=downloader,
            file_manager=file_manager,
            download_concurrency=download_concurrency,
            stale_page_limit=stale_page_limit,
            deadline_s=deadline_s,
        )
        if discover_url:
            try:
                known = {spec.id for spec in specs}
                for spec in await discover_catalogs(web_scraper, discover_url, limit=discover_limit):
                    config_store.save(spec)
                    if spec.id not in known:
                        specs.append(spec)
            except AcquisitionError as e:
                logger.error("Catalog discovery on %s failed: %s", discover_url, e)
        for spec in specs:
            try:
                results.append(await run_acquisition(spec, coordinator, file_manager, bulk=bulk))
            except AcquisitionError as e:
                # A malformed page range or an unreadable registry only sinks this catalog.
                logger.error("Catalog %s aborted: %s", spec.id, e)

    if results:
        Console().print(_summary_table(results))
    logger.info("Main pipeline process finished.")
    return results

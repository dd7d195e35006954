# run_flyer.py
import asyncio
import argparse
import logging
import sys
from pathlib import Path

# Import RichHandler here for centralized logging
from rich.logging import RichHandler
from rich.console import Console

from flyer_pipeline import config
from flyer_pipeline.delegates import ConfigStoreDelegate
from flyer_pipeline.main import main as run_pipeline


def configure_logging(debug: bool) -> None:
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(levelname)-8s - %(name)-25s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    file_handler = logging.FileHandler(Path("pipeline.log"))
    file_handler.setLevel(logging.DEBUG)  # Log all debug messages to file
    file_handler.setFormatter(formatter)
    root_logger.addHandler(file_handler)

    rich_handler = RichHandler(
        level=logging.DEBUG if debug else logging.INFO,
        show_time=True,
        show_level=True,
        show_path=False,
        markup=True,
    )
    root_logger.addHandler(rich_handler)

    # httpx logs every request at INFO, which drowns out page progress.
    logging.getLogger("httpx").setLevel(logging.WARNING)


if __name__ == "__main__":
    # --- Argument Parsing ---
    parser = argparse.ArgumentParser(
        description="Download the pages of paginated online catalogs (flyers) described in configs/.",
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument(
        'configs',
        nargs='*',
        help="""Catalog definitions to acquire, by name or path.
Example: python run_flyer.py lidl kaufland.json
"""
    )
    parser.add_argument('--list', action='store_true', help="List the available catalog definitions and exit.")
    parser.add_argument('--all', action='store_true', help="Acquire every catalog definition in the configs directory.")
    parser.add_argument('--configs-dir', type=Path, default=config.CONFIGS_PATH, help="Directory holding catalog definitions.")
    parser.add_argument('--data-dir', type=Path, default=config.DATA_PATH, help="Where images and newsletters.json are written.")
    parser.add_argument(
        '--bulk',
        action='store_true',
        help="Render the first page once and take every asset-host image on it as the catalog pages."
    )
    parser.add_argument('--concurrency', type=int, default=config.DOWNLOAD_CONCURRENCY, help="Parallel image downloads.")
    parser.add_argument(
        '--stale-limit',
        type=int,
        default=config.STALE_PAGE_LIMIT,
        help="Stop after this many consecutive empty or repeated pages (0 disables)."
    )
    parser.add_argument('--deadline', type=float, default=config.RUN_DEADLINE_S, help="Time budget per catalog, in seconds.")
    parser.add_argument(
        '--discover',
        metavar='URL',
        default=None,
        help="""Render a store's catalog listing page, save a definition for every catalog
linked from it and acquire those catalogs too.
Example: python run_flyer.py --discover https://www.lidl.ro/c/cataloage-online/s10019911
"""
    )
    parser.add_argument('--discover-limit', type=int, default=None, help="Acquire at most this many discovered catalogs.")
    parser.add_argument('--har', type=Path, default=None, help="Record a HAR file of the browser session for analysis.")
    parser.add_argument('--debug', action='store_true', help="Show debug output on the console.")

    args = parser.parse_args()
    configure_logging(args.debug)

    config_store = ConfigStoreDelegate(args.configs_dir)
    if args.list:
        console = Console()
        for name in config_store.list_configs():
            console.print(name)
        sys.exit(0)

    names = config_store.list_configs() if args.all else args.configs
    if not names and not args.discover:
        parser.error("name at least one catalog definition, or use --all / --list / --discover")

    logging.info("=" * 60)
    logging.info("Flyer Acquisition Pipeline Starting...")
    logging.info("Catalogs: %s", names)
    logging.info("=" * 60)

    try:
        asyncio.run(run_pipeline(
            config_names=names,
            configs_path=args.configs_dir,
            data_path=args.data_dir,
            bulk=args.bulk,
            download_concurrency=args.concurrency,
            stale_page_limit=args.stale_limit,
            deadline_s=args.deadline,
            har_output_path=args.har,
            discover_url=args.discover,
            discover_limit=args.discover_limit,
        ))
    except KeyboardInterrupt:
        logging.warning("Pipeline interrupted by user.")
    except Exception as e:
        logging.critical("An unexpected error occurred: %s", e, exc_info=True)
    finally:
        logging.info("=" * 60)
        logging.info("Pipeline execution finished.")

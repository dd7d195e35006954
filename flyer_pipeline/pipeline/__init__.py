# flyer_pipeline/pipeline/__init__.py

# This file makes the pipeline components directly available from the 'pipeline' package.
from .image_locator import (
    AssetHostScanStrategy,
    ImageLocator,
    LocatorStrategy,
    SelectorChainStrategy,
    SizeRankedStrategy,
    absolutize,
)
from .page_worker import PageWorker
from .coordinator import AcquisitionCoordinator, AcquisitionOutcome
from .assembler import assemble_catalog, parse_validity, persist_catalog
from .catalog_discovery import discover_catalogs, extract_catalog_links, spec_for_catalog

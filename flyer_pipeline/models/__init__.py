# flyer_pipeline/models/__init__.py

# This file makes the model classes directly available from the 'models' package.
# Instead of: from flyer_pipeline.models.catalog_models import Catalog
# We can now use: from flyer_pipeline.models import Catalog

from .catalog_models import Catalog, CatalogPage, CatalogSpec, PageFailure, PartialFailureReport
from .page_models import ImageInfo, PageState, PageTask, RenderedDocument

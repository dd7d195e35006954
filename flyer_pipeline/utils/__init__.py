# flyer_pipeline/utils/__init__.py

from .url_templater import PAGE_PATTERN, build_page_url, extract_page_index

import asyncio

import pytest

from conftest import FakeRenderer
from flyer_pipeline.delegates import ConfigStoreDelegate
from flyer_pipeline.errors import RenderError
from flyer_pipeline.models import RenderedDocument
from flyer_pipeline.pipeline import discover_catalogs, extract_catalog_links, spec_for_catalog

LISTING_URL = "https://www.lidl.ro/c/cataloage-online/s10019911"
WEEKLY = "https://www.lidl.ro/l/ro/cataloage/catalogul-saptamanal-perioada-13-10-19-10-2025"
NEXT_WEEK = "https://www.lidl.ro/l/ro/cataloage/catalogul-saptamanal-perioada-20-10-26-10-2025"

LISTING_HTML = """
<html><body>
  <a href="/l/ro/cataloage/catalogul-saptamanal-perioada-13-10-19-10-2025/ar/0">This week</a>
  <a href="/l/ro/cataloage/catalogul-saptamanal-perioada-13-10-19-10-2025/view/flyer/page/1">Open</a>
  <a href="https://www.lidl.ro/l/ro/cataloage/catalogul-saptamanal-perioada-20-10-26-10-2025/ar/3">Next week</a>
  <a href="/l/ro/cataloage/reduceri-perioada-13-10-19-10-2025/ar/1">Discounts</a>
  <a href="/l/ro/cataloage/catalog-bucatarie">Kitchen</a>
  <a href="/c/oferte/s100">Offers</a>
  <a>No link</a>
</body></html>
"""


def _listing():
    return RenderedDocument(url=LISTING_URL, html=LISTING_HTML)


def test_extract_catalog_links_strips_and_filters():
    assert extract_catalog_links(_listing()) == [WEEKLY, NEXT_WEEK]


def test_extract_catalog_links_without_required_tokens():
    links = extract_catalog_links(_listing(), required=(), excluded=())
    assert links == [
        WEEKLY,
        NEXT_WEEK,
        "https://www.lidl.ro/l/ro/cataloage/reduceri-perioada-13-10-19-10-2025",
        "https://www.lidl.ro/l/ro/cataloage/catalog-bucatarie",
    ]


def test_spec_for_catalog():
    spec = spec_for_catalog(WEEKLY, "Lidl", max_pages=24)

    assert spec.id == "lidl-catalogul-saptamanal-perioada-13-10-19-10-2025"
    assert spec.first_page_url == f"{WEEKLY}/view/flyer/page/1"
    assert spec.last_page_url == f"{WEEKLY}/view/flyer/page/24"
    assert list(spec.page_range()) == list(range(1, 25))
    assert (spec.valid_from, spec.valid_until) == ("2025-10-13", "2025-10-19")
    assert spec.cover_url == ""


def test_spec_for_catalog_needs_a_page():
    with pytest.raises(ValueError):
        spec_for_catalog(WEEKLY, "Lidl", max_pages=0)


def test_discover_catalogs_renders_listing_once():
    renderer = FakeRenderer({LISTING_URL: _listing()})

    specs = asyncio.run(discover_catalogs(renderer, LISTING_URL, settle_delay_ms=0, limit=1))

    assert renderer.calls == [LISTING_URL]
    assert [spec.id for spec in specs] == ["lidl-catalogul-saptamanal-perioada-13-10-19-10-2025"]
    assert specs[0].store == "Lidl"


def test_discover_catalogs_listing_failure_raises():
    renderer = FakeRenderer({LISTING_URL: RenderError(LISTING_URL, "blocked")})
    with pytest.raises(RenderError):
        asyncio.run(discover_catalogs(renderer, LISTING_URL, settle_delay_ms=0))


def test_discovered_spec_round_trips_through_config_store(tmp_path):
    store = ConfigStoreDelegate(tmp_path / "configs")
    spec = spec_for_catalog(NEXT_WEEK, "Lidl")

    path = store.save(spec)

    assert path.name == f"{spec.id}.json"
    assert store.load(spec.id) == spec


def test_save_keeps_existing_definition(tmp_path):
    store = ConfigStoreDelegate(tmp_path)
    spec = spec_for_catalog(WEEKLY, "Lidl")
    path = store.save(spec)
    path.write_text(path.read_text(encoding="utf-8").replace('"Lidl"', '"Lidl RO"'), encoding="utf-8")

    store.save(spec)
    assert store.load(spec.id).store == "Lidl RO"

    store.save(spec, overwrite=True)
    assert store.load(spec.id).store == "Lidl"

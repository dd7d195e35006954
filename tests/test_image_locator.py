import pytest

from flyer_pipeline.errors import NoImageFound
from flyer_pipeline.models import ImageInfo, RenderedDocument
from flyer_pipeline.pipeline.image_locator import (
    AssetHostScanStrategy,
    ImageLocator,
    SelectorChainStrategy,
    SizeRankedStrategy,
    absolutize,
)

PAGE_URL = "https://flyers.example.com/weekly/view/flyer/page/3"


def test_absolutize_uses_the_page_host():
    assert absolutize("/img/p3.jpg", PAGE_URL) == "https://flyers.example.com/img/p3.jpg"
    assert absolutize("//cdn.example.net/p3.jpg", PAGE_URL) == "https://cdn.example.net/p3.jpg"
    assert absolutize("https://cdn.example.net/p3.jpg", PAGE_URL) == "https://cdn.example.net/p3.jpg"
    assert absolutize("p3.jpg", "http://other.example.org/a/b") == "http://other.example.org/p3.jpg"


def test_absolutize_ignores_the_page_path():
    assert absolutize("img/x.jpg", PAGE_URL) == "https://flyers.example.com/img/x.jpg"
    assert absolutize("../x.jpg", PAGE_URL) == "https://flyers.example.com/x.jpg"


def test_size_ranked_picks_largest_area():
    document = RenderedDocument(url=PAGE_URL, html="", images=[
        ImageInfo("/banner.jpg", 1900, 510),
        ImageInfo("/page-big.jpg", 1100, 1500),
        ImageInfo("/page-small.jpg", 800, 900),
        ImageInfo("/logo.png", 200, 80),
    ])
    assert SizeRankedStrategy(500).locate(document) == "https://flyers.example.com/page-big.jpg"


def test_size_ranked_threshold_is_strict_in_both_directions():
    document = RenderedDocument(url=PAGE_URL, html="", images=[
        ImageInfo("/exactly.jpg", 500, 900),
        ImageInfo("/wide.jpg", 1900, 300),
        ImageInfo("data:image/png;base64,AAAA", 1000, 1000),
    ])
    assert SizeRankedStrategy(500).locate(document) is None


def test_size_ranked_tie_keeps_document_order():
    document = RenderedDocument(url=PAGE_URL, html="", images=[
        ImageInfo("/first.jpg", 1000, 1000),
        ImageInfo("/second.jpg", 1000, 1000),
    ])
    assert SizeRankedStrategy(500).locate(document).endswith("/first.jpg")


def test_selector_chain_used_when_no_large_image():
    html = """
    <html><body>
      <header><img src="/logo.svg"></header>
      <main><img src="/flyer/p3.jpg" alt="page 3"></main>
    </body></html>
    """
    document = RenderedDocument(url=PAGE_URL, html=html, images=[ImageInfo("/flyer/p3.jpg", 300, 400)])
    locator = ImageLocator([SizeRankedStrategy(500), SelectorChainStrategy(["img.page-image", "main img", "img"])])
    assert locator.locate(document) == "https://flyers.example.com/flyer/p3.jpg"


def test_selector_chain_order_and_svg_exclusion():
    html = """
    <div class="page-container"><img src="/icons/zoom.svg"><img data-src="/lazy/p3.webp"></div>
    <main><img src="/main.jpg"></main>
    """
    document = RenderedDocument(url=PAGE_URL, html=html)
    strategy = SelectorChainStrategy([".page-container", "main img"])
    assert strategy.locate(document) == "https://flyers.example.com/lazy/p3.webp"


def test_selector_chain_nothing_matches():
    document = RenderedDocument(url=PAGE_URL, html="<div><p>Loading...</p></div>")
    assert SelectorChainStrategy(["main img", "article img"]).locate(document) is None


def test_locator_raises_no_image_found():
    document = RenderedDocument(url=PAGE_URL, html="<main></main>", images=[ImageInfo("/tiny.gif", 1, 1)])
    with pytest.raises(NoImageFound):
        ImageLocator.default().locate(document)


def test_asset_host_scan_deduplicates_in_document_order():
    html = """
    <img src="https://imgproxy.leaflets.schwarz/a/p1.jpg">
    <img src="https://imgproxy.leaflets.schwarz/a/p2.jpg">
    <img src="https://imgproxy.leaflets.schwarz/a/p1.jpg">
    <img src="https://www.example.com/ad.jpg">
    """
    document = RenderedDocument(url=PAGE_URL, html=html, images=[
        ImageInfo("https://imgproxy.leaflets.schwarz/a/p1.jpg", 900, 1200),
    ])
    strategy = AssetHostScanStrategy(["imgproxy.leaflets.schwarz"])
    assert strategy.collect(document) == [
        "https://imgproxy.leaflets.schwarz/a/p1.jpg",
        "https://imgproxy.leaflets.schwarz/a/p2.jpg",
    ]
    assert strategy.locate(document) == "https://imgproxy.leaflets.schwarz/a/p1.jpg"

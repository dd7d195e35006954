import asyncio

import httpx

from flyer_pipeline.delegates import DownloaderDelegate


def _handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/ok.jpg":
        return httpx.Response(200, content=b"\xff\xd8jpeg-bytes")
    if request.url.path == "/missing.jpg":
        return httpx.Response(404, content=b"not found")
    if request.url.path == "/down.jpg":
        raise httpx.ConnectError("connection refused", request=request)
    return httpx.Response(500)


async def _download(url, destination):
    async with DownloaderDelegate(user_agent="test-agent", transport=httpx.MockTransport(_handler)) as downloader:
        return await downloader.download_image(url, destination)


def test_download_writes_and_overwrites(tmp_path):
    destination = tmp_path / "pages" / "page-01.jpg"
    destination.parent.mkdir()
    destination.write_bytes(b"stale")

    error = asyncio.run(_download("https://cdn.example.com/ok.jpg", destination))

    assert error is None
    assert destination.read_bytes() == b"\xff\xd8jpeg-bytes"
    assert list(destination.parent.iterdir()) == [destination]


def test_bad_status_is_returned_not_raised(tmp_path):
    destination = tmp_path / "page-02.jpg"

    error = asyncio.run(_download("https://cdn.example.com/missing.jpg", destination))

    assert error is not None
    assert error.status == 404
    assert not destination.exists()
    assert not (tmp_path / "page-02.jpg.part").exists()


def test_network_error_is_returned_not_raised(tmp_path):
    destination = tmp_path / "page-03.jpg"

    error = asyncio.run(_download("https://cdn.example.com/down.jpg", destination))

    assert error is not None
    assert error.status is None
    assert "connection refused" in error.network_error
    assert list(tmp_path.iterdir()) == []


def test_client_sends_user_agent(tmp_path):
    seen = {}

    def handler(request):
        seen["ua"] = request.headers["User-Agent"]
        return httpx.Response(200, content=b"x")

    async def run():
        async with DownloaderDelegate(user_agent="flyer-bot/1.0", transport=httpx.MockTransport(handler)) as d:
            return await d.download_image("https://cdn.example.com/p.jpg", tmp_path / "p.jpg")

    assert asyncio.run(run()) is None
    assert seen["ua"] == "flyer-bot/1.0"

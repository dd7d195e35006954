import asyncio

import pytest

from conftest import BASE, FakeDownloader, FakeRenderer, page_doc
from flyer_pipeline.errors import DownloadError, InvalidTransition, NoImageFound, RenderError
from flyer_pipeline.models import PageState, PageTask, RenderedDocument
from flyer_pipeline.pipeline import ImageLocator, PageWorker


def _worker(pages):
    return PageWorker(FakeRenderer(pages), ImageLocator.default(), settle_delay_ms=0)


def test_task_transitions_cannot_skip_states():
    task = PageTask(page_index=1, page_url=f"{BASE}/1")
    with pytest.raises(InvalidTransition):
        task.advance(PageState.LOCATED)
    with pytest.raises(InvalidTransition):
        task.fail("render")
    task.advance(PageState.RENDERING)
    task.fail("render")
    assert task.is_terminal
    with pytest.raises(InvalidTransition):
        task.advance(PageState.RENDERING)


def test_resolve_and_fetch(tmp_path):
    url = f"{BASE}/2"
    worker = _worker({url: page_doc(url, "https://cdn.example.com/p2.jpg")})
    task = PageTask(page_index=2, page_url=url)

    asyncio.run(worker.resolve(task))
    assert task.state is PageState.LOCATED
    assert task.image_url == "https://cdn.example.com/p2.jpg"

    destination = tmp_path / "page-02.jpg"
    asyncio.run(worker.fetch(task, FakeDownloader(), destination))
    assert task.state is PageState.DONE
    assert task.local_path == destination
    assert destination.exists()


def test_render_failure_is_recorded():
    url = f"{BASE}/3"
    worker = _worker({url: RenderError(url, "net::ERR_TIMED_OUT")})
    task = asyncio.run(worker.resolve(PageTask(page_index=3, page_url=url)))
    assert task.state is PageState.FAILED
    assert task.failed_stage == "render"
    assert isinstance(task.error, RenderError)


def test_locate_failure_is_recorded():
    url = f"{BASE}/4"
    worker = _worker({url: RenderedDocument(url=url, html="<p>nothing</p>")})
    task = asyncio.run(worker.resolve(PageTask(page_index=4, page_url=url)))
    assert task.state is PageState.FAILED
    assert task.failed_stage == "locate"
    assert isinstance(task.error, NoImageFound)


def test_fetch_failure_is_recorded(tmp_path):
    url = f"{BASE}/5"
    image = "https://cdn.example.com/p5.jpg"
    worker = _worker({url: page_doc(url, image)})
    downloader = FakeDownloader(failing={image: DownloadError(image, status=503)})

    task = asyncio.run(worker.resolve(PageTask(page_index=5, page_url=url)))
    asyncio.run(worker.fetch(task, downloader, tmp_path / "page-05.jpg"))

    assert task.state is PageState.FAILED
    assert task.failed_stage == "fetch"
    assert task.error.status == 503
    assert task.local_path is None

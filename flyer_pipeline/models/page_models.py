# flyer_pipeline/models/page_models.py

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional

from ..errors import AcquisitionError, InvalidTransition


class PageState(Enum):
    PENDING = "pending"
    RENDERING = "rendering"
    LOCATED = "located"
    FETCHING = "fetching"
    DONE = "done"
    FAILED = "failed"


# Every state a page task may move to from a given state. DONE and FAILED are terminal.
_TRANSITIONS: Dict[PageState, FrozenSet[PageState]] = {
    PageState.PENDING: frozenset({PageState.RENDERING}),
    PageState.RENDERING: frozenset({PageState.LOCATED, PageState.FAILED}),
    PageState.LOCATED: frozenset({PageState.FETCHING, PageState.FAILED}),
    PageState.FETCHING: frozenset({PageState.DONE, PageState.FAILED}),
    PageState.DONE: frozenset(),
    PageState.FAILED: frozenset(),
}


@dataclass
class PageTask:
    """
    One page of a catalog run. Created by the coordinator when the run starts and
    thrown away when it ends; every task is attempted exactly once.
    """
    page_index: int
    page_url: str
    state: PageState = PageState.PENDING
    image_url: Optional[str] = None
    local_path: Optional[Path] = None
    error: Optional[AcquisitionError] = None
    # Which step the task failed in (render, locate, fetch, duplicate, deadline).
    failed_stage: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in (PageState.DONE, PageState.FAILED)

    def advance(self, new_state: PageState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise InvalidTransition(
                f"page {self.page_index}: cannot move from {self.state.value} to {new_state.value}"
            )
        self.state = new_state

    def fail(self, stage: str, error: Optional[AcquisitionError] = None) -> None:
        self.advance(PageState.FAILED)
        self.failed_stage = stage
        self.error = error


@dataclass(frozen=True)
class ImageInfo:
    """An <img> element as measured in the rendered page."""
    src: str
    width: float = 0
    height: float = 0

    @property
    def area(self) -> float:
        return self.width * self.height


@dataclass
class RenderedDocument:
    """Snapshot of a page after client-side rendering settled."""
    url: str
    html: str
    images: List[ImageInfo] = field(default_factory=list)

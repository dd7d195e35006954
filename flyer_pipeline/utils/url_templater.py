# flyer_pipeline/utils/url_templater.py
import re
from typing import Pattern, Union

from .. import config
from ..errors import MalformedURL

# Compiled once; callers may still pass their own pattern (string or compiled) with a single numeric group.
PAGE_PATTERN = re.compile(config.PAGE_PATTERN)

PatternLike = Union[str, Pattern[str]]


def _compile(pattern: PatternLike) -> Pattern[str]:
    compiled = re.compile(pattern) if isinstance(pattern, str) else pattern
    if compiled.groups != 1:
        raise ValueError(f"page pattern must have exactly one group, got {compiled.groups}: {compiled.pattern}")
    return compiled


def _single_match(url: str, pattern: PatternLike) -> "re.Match[str]":
    compiled = _compile(pattern)
    matches = list(compiled.finditer(url))
    if not matches:
        raise MalformedURL(url)
    if len(matches) > 1:
        # Two markers means we cannot tell which one is the page number.
        raise MalformedURL(url, f"page index pattern found {len(matches)} times")
    return matches[0]


def extract_page_index(url: str, pattern: PatternLike = PAGE_PATTERN) -> int:
    """Returns the page number encoded in `url`, e.g. 7 for '.../view/flyer/page/7'."""
    match = _single_match(url, pattern)
    return int(match.group(1))


def build_page_url(template_url: str, page_index: int, pattern: PatternLike = PAGE_PATTERN) -> str:
    """Substitutes `page_index` into the numeric segment of `template_url`."""
    if page_index < 0:
        raise ValueError(f"page index must not be negative: {page_index}")
    match = _single_match(template_url, pattern)
    start, end = match.span(1)
    return f"{template_url[:start]}{page_index}{template_url[end:]}"

"""Content processing for Quill.

This module turns content files into Page records: it splits off and decodes the
JSON front matter, validates the required fields and derives where the built
page is written.

Key classes:
- Page: Dataclass representing a site page and its front matter.
- FileContentLoader: Discovers content files in a deterministic order.
- ContentProcessor: Facade loading every page of a pages directory.

Key functions:
- parse_page: Build a Page from raw file text.
- destination_path: Map a permalink to an output file path.
"""

from __future__ import annotations

import json
import posixpath
import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from .errors import (
    BuildError,
    FrontMatterParseError,
    InvalidPermalinkError,
    MissingParameterError,
    UnsupportedFormatError,
)
from .extractors import split_front_matter
from .utils import is_ignored, walk_files

SUPPORTED_FORMATS = (".html", ".md")
DATE_FORMAT = "%Y-%m-%d"
DEFAULT_TYPE = "page"
REQUIRED_FIELDS = ("title", "template", "permalink")

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")


@dataclass
class Page:
    """Represents a site page with its front matter and content.

    Attributes:
        title: Page title, required.
        permalink: Output URL path of the page, required.
        template: Name of the layout that wraps the page, required.
        date: Publication date (midnight UTC), optional.
        draft: Excluded from production builds when set.
        type: Kind of page, "page" unless set (posts use "post").
        content_only: Render without header and footer.
        summary: Short description used by the feed and meta tags.
        meta_tags: Extra HTML meta tags, name to content.
        css: Extra stylesheet paths to include.
        js: Extra script paths to include.
        path: Path to the source file.
        dst_path: Slash-separated output path relative to the build directory.
        content: Page body; raw after parsing, then progressively rendered.
    """

    title: str
    permalink: str
    template: str
    path: Path
    dst_path: str
    content: str = ""
    date: datetime | None = None
    draft: bool = False
    type: str = DEFAULT_TYPE
    content_only: bool = False
    summary: str = ""
    meta_tags: dict[str, str] = field(default_factory=dict)
    css: list[str] = field(default_factory=list)
    js: list[str] = field(default_factory=list)

    @property
    def is_markdown(self) -> bool:
        return self.path.suffix == ".md"


def destination_path(permalink: str) -> str:
    """Derive the output file path for a permalink.

    Permalinks ending in .html are used as they are; the root permalink maps to
    index.html; any other permalink gets /index.html appended.

    Args:
        permalink: Validated permalink.

    Returns:
        Cleaned slash-separated path relative to the build directory.

    Examples:
        >>> destination_path("/")
        'index.html'

        >>> destination_path("/blog/test")
        'blog/test/index.html'

        >>> destination_path("/test.html")
        'test.html'
    """
    path = urlsplit(permalink).path or "/"
    if path.endswith(".html"):
        dst = path
    elif path == "/":
        dst = "/index.html"
    else:
        dst = path + "/index.html"
    return posixpath.normpath(dst).lstrip("/")


def _invalid_permalink_reason(permalink: str) -> str | None:
    if _CONTROL_CHARS_RE.search(permalink):
        return "invalid control character in URL"
    try:
        parts = urlsplit(permalink)
    except ValueError as exc:
        return str(exc)
    if not parts.scheme and not parts.path.startswith("/"):
        return "must be an absolute path or an absolute URI"
    return None


def _parse_date(value: Any) -> datetime | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"date must be a string, got {type(value).__name__}")
    return datetime.strptime(value, DATE_FORMAT).replace(tzinfo=timezone.utc)


def _expect(data: dict[str, Any], key: str, kind: type, default: Any) -> Any:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, kind):
        raise ValueError(f"{key} must be of type {kind.__name__}")
    return value


def parse_page(text: str, source_path: Path) -> Page:
    """Build a Page from the raw text of a content file.

    Args:
        text: Raw file content.
        source_path: Path of the content file.

    Returns:
        Page with front matter decoded and dst_path computed. Its content is
        the body with the front matter removed.

    Raises:
        UnsupportedFormatError: If the file is neither HTML nor Markdown.
        MissingFrontMatterError: If there is no closed front matter block.
        FrontMatterParseError: If the block is not a valid JSON object.
        MissingParameterError: If title, template or permalink is empty.
        InvalidPermalinkError: If the permalink is not a valid URI reference.
    """
    if source_path.suffix not in SUPPORTED_FORMATS:
        raise UnsupportedFormatError(source_path)

    block, body = split_front_matter(text, source_path)
    try:
        data = json.loads(block)
        if not isinstance(data, dict):
            raise ValueError("front matter must be a JSON object")
        title = _expect(data, "title", str, "")
        template = _expect(data, "template", str, "")
        permalink = _expect(data, "permalink", str, "")
        date = _parse_date(data.get("date"))
        meta_tags = _expect(data, "meta_tags", dict, {})
        css = _expect(data, "css", list, [])
        js = _expect(data, "js", list, [])
        page_type = _expect(data, "type", str, "") or DEFAULT_TYPE
        draft = _expect(data, "draft", bool, False)
        content_only = _expect(data, "content_only", bool, False)
        summary = _expect(data, "summary", str, "")
    except ValueError as exc:
        raise FrontMatterParseError(source_path, exc) from exc

    values = {"title": title, "template": template, "permalink": permalink}
    missing = [name for name in REQUIRED_FIELDS if not values[name]]
    if missing:
        raise MissingParameterError(source_path, missing)

    reason = _invalid_permalink_reason(permalink)
    if reason is not None:
        raise InvalidPermalinkError(source_path, permalink, reason)

    return Page(
        title=title,
        permalink=permalink,
        template=template,
        path=source_path,
        dst_path=destination_path(permalink),
        content=body,
        date=date,
        draft=draft,
        type=page_type,
        content_only=content_only,
        summary=summary,
        meta_tags={str(k): str(v) for k, v in meta_tags.items()},
        css=[str(item) for item in css],
        js=[str(item) for item in js],
    )


def load_page(path: Path) -> Page:
    """Read and parse a content file.

    Args:
        path: Path to the content file.

    Returns:
        Parsed Page.

    Raises:
        BuildError: If the file cannot be read or parsed.
    """
    if path.suffix not in SUPPORTED_FORMATS:
        raise UnsupportedFormatError(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise BuildError(path, f"failed to read: {exc}", exc) from exc
    return parse_page(text, path)


class FileContentLoader:
    """Discovers content files in a pages directory.

    Files are yielded in lexical depth-first order, which is the discovery
    order every later ordering step starts from.

    Attributes:
        pages_dir: Directory containing content files.
    """

    def __init__(self, pages_dir: Path):
        self.pages_dir = pages_dir

    def iter_files(self) -> Iterator[Path]:
        """Iterate over content files, skipping editor and VCS noise.

        Raises:
            BuildError: If the pages directory cannot be read.
        """
        try:
            for path in walk_files(self.pages_dir):
                if not is_ignored(path):
                    yield path
        except OSError as exc:
            raise BuildError(self.pages_dir, f"failed to read pages: {exc}", exc) from exc


class ContentProcessor:
    """Facade for loading every page of a pages directory.

    Attributes:
        pages_dir: Directory containing content files.
    """

    def __init__(self, pages_dir: Path, content_loader: FileContentLoader | None = None):
        self.pages_dir = pages_dir
        self._content_loader = content_loader or FileContentLoader(pages_dir)

    def load(self, include_drafts: bool = True) -> list[Page]:
        """Load all content files and create Page objects.

        Args:
            include_drafts: Whether to keep pages marked as drafts.

        Returns:
            Pages in discovery order.
        """
        pages: list[Page] = []
        for path in self._content_loader.iter_files():
            page = load_page(path)
            if page.draft and not include_drafts:
                continue
            pages.append(page)
        return pages

"""Feed generation for Quill.

This module writes the Atom syndication feed of a site from its posts.
Following the Single Responsibility Principle, feed generation is separate
from build orchestration.

Classes:
    AtomFeedGenerator: Generates feed.xml from pages of type "post".
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

from feedgen.feed import FeedGenerator

from .config import Config
from .content import Page
from .html_utils import is_full_url, join_url

POST_TYPE = "post"


class AtomFeedGenerator:
    """Generates an Atom feed listing the site's posts.

    Posts keep the order they are given in, which is the build order (newest
    first). Drafts are left out of production builds.

    Attributes:
        config: Build configuration providing title, author and base URL.
    """

    filename = "feed.xml"

    def __init__(self, config: Config):
        self.config = config

    def _entries(self, pages: Iterable[Page]) -> list[Page]:
        return [
            page
            for page in pages
            if page.type == POST_TYPE and not (page.draft and self.config.prod)
        ]

    def generate(self, pages: Iterable[Page]) -> bytes:
        """Generate the Atom document.

        Args:
            pages: All pages of the build, in build order, with rendered
                content.

        Returns:
            Feed XML.
        """
        updated = self.config.feed_updated or datetime.now(timezone.utc)
        if updated.tzinfo is None:
            updated = updated.replace(tzinfo=timezone.utc)
        author = {"name": self.config.author}
        home = self.config.base_url + "/"

        fg = FeedGenerator()
        fg.id(home)
        fg.title(self.config.title)
        fg.link(href=home, rel="alternate")
        fg.author(author)
        fg.updated(updated)

        for page in self._entries(pages):
            link = (
                page.permalink
                if is_full_url(page.permalink)
                else join_url(self.config.base_url, page.permalink)
            )
            fe = fg.add_entry(order="append")
            fe.id(link)
            fe.title(page.title)
            fe.link(href=link, rel="alternate")
            fe.author(author)
            if page.summary:
                fe.summary(page.summary)
            fe.content(page.content, type="html")
            date = page.date or updated
            fe.published(date)
            fe.updated(date)
        return fg.atom_str(pretty=True)

    def write(self, output_dir: Path, pages: Iterable[Page]) -> Path:
        """Generate the feed and write it to the output directory.

        Returns:
            Path of the written feed.
        """
        output_path = output_dir / self.filename
        output_path.write_bytes(self.generate(pages))
        return output_path

"""Site building functionality for Quill.

This module contains the core logic for building a static site from source files.
A build walks through these stages, and any failure aborts the remaining ones:

1. Load and compile the layout templates.
2. Load and parse every page, then order them.
3. Fingerprint the static files.
4. Clear the output directory.
5. Render and write every page.
6. Write the feed.
7. Copy the static files.

Everything the pages depend on is loaded before the output directory is
cleared, so a broken template or page never destroys the previous build.

Key functions:
- build_site: Main function to build the entire site.
- render_page: Run one page through the rendering stages.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from .assets import AssetPipeline
from .collections import PageCollection, PageOrdering, date_descending
from .config import Config
from .content import ContentProcessor, Page
from .errors import BuildError
from .feeds import AtomFeedGenerator
from .html_utils import minify_html
from .renderers import MarkdownRenderer, strip_html_comments
from .templates import RenderContext, TemplateEngine
from .utils import ensure_clean_dir

logger = logging.getLogger(__name__)

__all__ = ["BuildError", "BuildResult", "build_site", "render_page"]


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        pages: All pages of the site, in build order.
        output_dir: Directory where the site was built.
        static_paths: Static source path to fingerprinted output path.
        feed_path: Path of the written feed, None when skipped.
    """

    pages: list[Page]
    output_dir: Path
    static_paths: dict[str, str] = field(default_factory=dict)
    feed_path: Path | None = None


def render_page(
    engine: TemplateEngine,
    page: Page,
    render: RenderContext,
    markdown: MarkdownRenderer | None = None,
) -> str:
    """Render a page to its final HTML document.

    The page's content is replaced at each stage: expanded as a template,
    converted from Markdown when the source is Markdown, stripped of HTML
    comments. The layout then wraps it and the result is minified.

    Args:
        engine: Template engine with loaded layouts.
        page: Page to render; its content is updated in place.
        render: Render context of the build.
        markdown: Markdown renderer to use.

    Returns:
        Minified HTML document.

    Raises:
        BuildError: If any stage fails.
    """
    page.content = engine.render_body(page, render)
    if page.is_markdown:
        page.content = (markdown or MarkdownRenderer()).render(page.content)
    page.content = strip_html_comments(page.content)
    return minify_html(engine.render_layout(page, render))


def _write_page(output_dir: Path, page: Page, rendered: str) -> None:
    target = output_dir / page.dst_path
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(rendered, encoding="utf-8")
    except OSError as exc:
        raise BuildError(page.path, f"failed to write {target}: {exc}", exc) from exc


def build_site(config: Config, ordering: PageOrdering = date_descending) -> BuildResult:
    """Build the entire static site.

    Args:
        config: Build configuration.
        ordering: Orders the pages found in discovery order (lexical,
            depth-first). The default puts the newest pages first and dateless
            pages last.

    Returns:
        BuildResult describing the written site.

    Raises:
        BuildError: If any stage fails. The output directory may be left
            partially written if the failure happens after it was cleared.
    """
    engine = TemplateEngine(config.templates_dir)
    engine.load()

    pages = ContentProcessor(config.pages_dir).load(include_drafts=not config.prod)
    for page in pages:
        if not engine.has_template(page.template):
            raise BuildError(page.path, f"no such template {page.template!r}")
    pages = ordering(pages)
    logger.debug("Loaded %d pages from %s", len(pages), config.pages_dir)

    assets = AssetPipeline(config.static_dir, config.skip_fingerprint)
    static_paths = assets.hash()

    render = RenderContext(config, PageCollection(pages), static_paths)

    try:
        ensure_clean_dir(config.dst)
    except OSError as exc:
        raise BuildError(config.dst, f"failed to clear output directory: {exc}", exc) from exc

    markdown = MarkdownRenderer()
    for page in pages:
        _write_page(config.dst, page, render_page(engine, page, render, markdown))

    feed_path = None
    if not config.skip_feed:
        feed = AtomFeedGenerator(config)
        try:
            feed_path = feed.write(config.dst, pages)
        except (OSError, ValueError) as exc:
            raise BuildError(config.dst / feed.filename, f"failed to write feed: {exc}", exc) from exc

    assets.copy(config.dst)
    logger.info("Built %d pages into %s", len(pages), config.dst)
    return BuildResult(
        pages=pages, output_dir=config.dst, static_paths=dict(static_paths), feed_path=feed_path
    )

"""Template rendering engine for Quill.

This module uses Jinja2 to compile the named layout templates of a build, to
expand page bodies as templates and to wrap rendered pages in their layout.

Layouts and page bodies share one set of helper functions. Helpers never close
over build state: each call reads the immutable RenderContext of the current
render from the Jinja evaluation context.

Key classes:
- RenderContext: Immutable view of one build handed to every helper call.
- TemplateEngine: Loads layouts and renders pages.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any

from jinja2 import (
    DictLoader,
    Environment,
    StrictUndefined,
    TemplateNotFound,
    TemplateSyntaxError,
    pass_context,
)
from jinja2.runtime import Context
from markupsafe import Markup

from .collections import PageCollection
from .config import Config
from .content import Page
from .errors import BuildError
from .html_utils import escape_html, is_full_url, join_url
from .utils import relative_posix, walk_files

logger = logging.getLogger(__name__)

__all__ = ["RenderContext", "TemplateEngine", "HELPERS"]

RENDER_CONTEXT_KEY = "_render"
TEMPLATE_SUFFIX = ".html"
ICON_SPRITE = "/icons/sprite.svg"


@dataclass(frozen=True)
class RenderContext:
    """Everything a helper function may consult while rendering.

    Attributes:
        config: Build configuration.
        pages: All pages of the build, in build order.
        static_paths: Static source path to fingerprinted path, both relative
            to their roots and slash-separated.
    """

    config: Config
    pages: PageCollection = field(default_factory=lambda: PageCollection([]))
    static_paths: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "static_paths", MappingProxyType(dict(self.static_paths)))

    def url(self, path: str) -> str:
        """Absolute URL in production builds, the path unchanged otherwise."""
        if is_full_url(path) or not self.config.prod:
            return path
        return join_url(self.config.base_url, path)

    def vanity_url(self, path: str) -> str:
        """URL on the primary site, for links from the vanity site back to it."""
        if is_full_url(path):
            return path
        return join_url(self.config.primary_url, path)

    def static(self, path: str) -> str:
        """URL of a static file under its fingerprinted name, if it has one."""
        fingerprinted = self.static_paths.get(path.lstrip("/"))
        if fingerprinted is None:
            return self.url(path)
        return self.url("/" + fingerprinted)


def _render(ctx: Context) -> RenderContext:
    return ctx[RENDER_CONTEXT_KEY]


@pass_context
def _content(ctx: Context, page: Page) -> Markup:
    return Markup(page.content)


@pass_context
def _time(ctx: Context, fmt: str, date: datetime | None) -> Markup:
    if date is None:
        return Markup("")
    machine = date.strftime("%Y-%m-%dT%H:%M:%SZ")
    return Markup(f'<time datetime="{machine}">{escape_html(date.strftime(fmt))}</time>')


def _icon_html(render: RenderContext, name: str) -> str:
    href = escape_html(render.static(ICON_SPRITE))
    return (
        '<svg class="icon" aria-hidden="true">'
        f'<use xlink:href="{href}#icon-{escape_html(name)}"/>'
        "</svg>"
    )


@pass_context
def _icon(ctx: Context, name: str) -> Markup:
    return Markup(_icon_html(_render(ctx), name))


@pass_context
def _image(ctx: Context, path: str, caption: str) -> Markup:
    src = escape_html(_render(ctx).static(path))
    caption = escape_html(caption)
    return Markup(
        "<figure>"
        f'<img alt="{caption}" src="{src}" loading="lazy"/>'
        f"<figcaption>{caption}</figcaption>"
        "</figure>"
    )


@pass_context
def _nav_link(ctx: Context, page: Page, title: str, icon_name: str, path: str) -> Markup:
    render = _render(ctx)
    if render.config.vanity:
        # The vanity site highlights its own index link and nothing else.
        current = path.rstrip("/") == render.config.base_url
        href = render.vanity_url(path)
    else:
        current = page.permalink == path
        href = render.url(path)
    css = ' class="current"' if current else ""
    return Markup(
        f'<a href="{escape_html(href)}"{css}>'
        f"{_icon_html(render, icon_name)}{escape_html(title)}</a>"
    )


@pass_context
def _pages(ctx: Context, page_type: str = "") -> PageCollection:
    return _render(ctx).pages.of_type(page_type)


@pass_context
def _url(ctx: Context, path: str) -> str:
    return _render(ctx).url(path)


@pass_context
def _static(ctx: Context, path: str) -> str:
    return _render(ctx).static(path)


@pass_context
def _vanity(ctx: Context) -> bool:
    return _render(ctx).config.vanity


@pass_context
def _vanity_url(ctx: Context, path: str) -> str:
    return _render(ctx).vanity_url(path)


HELPERS = {
    "content": _content,
    "time": _time,
    "icon": _icon,
    "image": _image,
    "navLink": _nav_link,
    "pages": _pages,
    "url": _url,
    "static": _static,
    "vanity": _vanity,
    "vanityURL": _vanity_url,
}


def _format_error_message(exc: Exception) -> str:
    """Format an exception into a user-friendly error message.

    Args:
        exc: The exception to format.

    Returns:
        A human-readable error message.
    """
    error_type = type(exc).__name__
    error_msg = str(exc)

    if error_type == "UndefinedError":
        return f"Undefined variable: {error_msg}"
    if error_type == "TypeError":
        return f"Type error: {error_msg}"
    if error_type == "AttributeError":
        return f"Attribute error: {error_msg}"

    return f"{error_type}: {error_msg}"


def _syntax_error_message(exc: TemplateSyntaxError) -> str:
    return f"Template syntax error on line {exc.lineno}: {exc.message}"


class TemplateEngine:
    """Template rendering engine using Jinja2.

    Layouts are compiled once by load(); page bodies are compiled per page.
    Layouts are autoescaped, page bodies are not, so Markdown and HTML
    sources reach the output as written.

    Attributes:
        templates_dir: Directory containing layout templates.
        layout_env: Environment for layouts.
        page_env: Environment for page bodies.
        templates: Names of the loaded layouts mapped to their source paths.
    """

    def __init__(self, templates_dir: Path):
        self.templates_dir = templates_dir
        self.templates: dict[str, Path] = {}
        self._sources: dict[str, str] = {}
        loader = DictLoader(self._sources)
        self.layout_env = Environment(
            loader=loader, autoescape=True, undefined=StrictUndefined
        )
        self.page_env = Environment(
            loader=loader,
            autoescape=False,
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )
        for env in (self.layout_env, self.page_env):
            env.globals.update(HELPERS)

    def load(self) -> None:
        """Compile every .html template under the templates directory.

        Each template is named by its slash-separated path relative to the
        templates directory, without extension: templates/blog/post.html is
        "blog/post".

        Raises:
            BuildError: If the directory cannot be read or a template fails
                to compile.
        """
        try:
            paths = [p for p in walk_files(self.templates_dir) if p.suffix == TEMPLATE_SUFFIX]
        except OSError as exc:
            raise BuildError(
                self.templates_dir, f"failed to read templates: {exc}", exc
            ) from exc

        for path in paths:
            name = relative_posix(path, self.templates_dir)[: -len(TEMPLATE_SUFFIX)]
            try:
                self._sources[name] = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise BuildError(path, f"failed to read: {exc}", exc) from exc
            self.templates[name] = path

        for name, path in self.templates.items():
            try:
                self.layout_env.get_template(name)
            except TemplateSyntaxError as exc:
                raise BuildError(path, _syntax_error_message(exc), exc) from exc
        logger.debug("Loaded %d templates from %s", len(self.templates), self.templates_dir)

    def has_template(self, name: str) -> bool:
        return name in self.templates

    def _context(self, page: Page, render: RenderContext) -> dict[str, Any]:
        return {"page": page, "config": render.config, RENDER_CONTEXT_KEY: render}

    def render_body(self, page: Page, render: RenderContext) -> str:
        """Expand the page body as a template with the page as context.

        Args:
            page: Page whose content is the raw body.
            render: Render context of the build.

        Returns:
            Expanded body.

        Raises:
            BuildError: If the body fails to compile or execute.
        """
        try:
            template = self.page_env.from_string(page.content)
        except TemplateSyntaxError as exc:
            raise BuildError(page.path, _syntax_error_message(exc), exc) from exc
        try:
            return template.render(self._context(page, render))
        except Exception as exc:
            raise BuildError(
                page.path,
                f"failed to execute page template: {_format_error_message(exc)}",
                exc,
            ) from exc

    def render_layout(self, page: Page, render: RenderContext) -> str:
        """Render the page's layout around its already rendered content.

        Args:
            page: Page with rendered content.
            render: Render context of the build.

        Returns:
            Full HTML document.

        Raises:
            BuildError: If the layout does not exist or fails to execute.
        """
        try:
            template = self.layout_env.get_template(page.template)
        except TemplateNotFound as exc:
            raise BuildError(page.path, f"no such template {page.template!r}", exc) from exc
        try:
            return template.render(self._context(page, render))
        except Exception as exc:
            raise BuildError(
                page.path,
                f"failed to execute template {page.template!r}: {_format_error_message(exc)}",
                exc,
            ) from exc

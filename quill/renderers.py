"""Content renderers for Quill.

This module converts expanded page bodies to their final HTML fragment:
Markdown is rendered with mistune, then HTML comments are stripped.

Key classes:
- _QuillRenderer: mistune HTML renderer adding heading IDs, smart punctuation
  and syntax highlighting.
- MarkdownRenderer: Renders Markdown source to HTML.

Key functions:
- strip_html_comments: Remove every <!-- ... --> span.
- www_links: mistune plugin turning bare www. hosts into http links.
"""

from __future__ import annotations

import re

import mistune
from mistune.util import escape_url

from .html_utils import escape_html

# Bare "www." hosts, trailing punctuation excluded like the url plugin does.
WWW_LINK_PATTERN = r"""(?<![\w./@])www\.[^\s<]+[^<.,:;"')\]\s]"""

# Non-greedy and unaware of nesting: "<!-- a <!-- b --> c -->" leaves " c -->".
HTML_COMMENT_RE = re.compile(r"<!--(.*?)-->", re.DOTALL)

_TAG_RE = re.compile(r"<[^>]+>")
_OPEN_DOUBLE_RE = re.compile(r'(^|[\s(\[{\u2014\u2013])"')
_OPEN_SINGLE_RE = re.compile(r"(^|[\s(\[{\u2014\u2013])'")


def strip_html_comments(html: str) -> str:
    """Remove all HTML comments from a fragment.

    Args:
        html: HTML text.

    Returns:
        The text with every non-nested <!-- ... --> span removed.
    """
    return HTML_COMMENT_RE.sub("", html)


def _generate_heading_id(text: str) -> str:
    """Generate a URL-friendly ID from heading text.

    Args:
        text: The heading text, possibly containing inline HTML.

    Returns:
        URL-friendly slug suitable for anchor links.
    """
    slug = _TAG_RE.sub("", text).lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[-\s]+", "-", slug)
    return slug.strip("-")


def smarten(text: str) -> str:
    """Apply typographic punctuation to a plain text run.

    Args:
        text: Text outside of code.

    Returns:
        Text with ellipses, dashes and curly quotes.

    Examples:
        >>> smarten('"Hi" -- it\\'s me...')
        '“Hi” – it’s me…'
    """
    text = text.replace("...", "\u2026")
    text = text.replace("---", "\u2014").replace("--", "\u2013")
    text = _OPEN_DOUBLE_RE.sub("\\1\u201c", text)
    text = text.replace('"', "\u201d")
    text = _OPEN_SINGLE_RE.sub("\\1\u2018", text)
    return text.replace("'", "\u2019")


class _QuillRenderer(mistune.HTMLRenderer):
    """Markdown renderer with heading IDs, smart punctuation and highlighting.

    Raw HTML in the source is passed through untouched.
    """

    def __init__(self):
        super().__init__(escape=False)
        self._heading_id_counts: dict[str, int] = {}

    def text(self, text: str) -> str:
        return super().text(smarten(text))

    def heading(self, text: str, level: int, **attrs) -> str:
        """Render a heading with an auto-generated, unique ID.

        Args:
            text: Heading inline HTML.
            level: Heading level (1-6).
            **attrs: Additional attributes.

        Returns:
            HTML heading tag with id attribute.
        """
        base_id = _generate_heading_id(text) or "section"
        if base_id in self._heading_id_counts:
            self._heading_id_counts[base_id] += 1
            heading_id = f"{base_id}-{self._heading_id_counts[base_id]}"
        else:
            self._heading_id_counts[base_id] = 0
            heading_id = base_id
        return f'<h{level} id="{heading_id}">{text}</h{level}>\n'

    def block_code(self, code: str, info: str | None = None) -> str:
        """Render a code block with Pygments syntax highlighting.

        Args:
            code: The code content.
            info: Language identifier (e.g., 'python', 'go').

        Returns:
            HTML string with highlighted code.
        """
        lang = info.split()[0] if info and info.strip() else ""
        if lang:
            from pygments import highlight
            from pygments.formatters import HtmlFormatter
            from pygments.lexers import get_lexer_by_name
            from pygments.util import ClassNotFound

            try:
                lexer = get_lexer_by_name(lang, stripall=True)
            except ClassNotFound:
                lexer = None
            if lexer is not None:
                formatter = HtmlFormatter(nowrap=False, cssclass="highlight")
                return highlight(code, lexer, formatter)
        lang_class = f' class="language-{escape_html(lang)}"' if lang else ""
        return f"<pre><code{lang_class}>{escape_html(code)}</code></pre>\n"


def _parse_www_link(inline, m, state):
    text = m.group(0)
    if state.in_link:
        inline.process_text(text, state)
        return m.end()
    state.append_token(
        {
            "type": "link",
            "children": [{"type": "text", "raw": text}],
            "attrs": {"url": escape_url("http://" + text)},
        }
    )
    return m.end()


def www_links(md):
    """mistune plugin linking bare www. hosts over http."""
    md.inline.register("www_link", WWW_LINK_PATTERN, _parse_www_link)


MARKDOWN_PLUGINS = ["table", "strikethrough", "task_lists", "url", www_links, "footnotes"]


class MarkdownRenderer:
    """Renders Markdown content to HTML.

    Tables, strikethrough, task lists, footnotes and autolinks (including
    bare www. hosts) are enabled.
    A fresh parser is created per call so heading IDs never leak between pages.
    """

    def render(self, content: str) -> str:
        """Render Markdown content to HTML.

        Args:
            content: Markdown source content.

        Returns:
            Rendered HTML.
        """
        markdown = mistune.create_markdown(
            renderer=_QuillRenderer(), plugins=MARKDOWN_PLUGINS
        )
        return markdown(content)

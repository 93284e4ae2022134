"""HTML utility functions for Quill.

This module provides HTML and URL string manipulation used by the template
helpers and the page writer.

Functions:
    escape_html: Escape special HTML characters in a string.
    is_full_url: Check for an absolute http(s) URL.
    join_url: Join a path onto a base URL with POSIX path cleaning.
    minify_html: Collapse insignificant whitespace in an HTML document.
"""

from __future__ import annotations

import posixpath
import re
from urllib.parse import urlsplit, urlunsplit

_PRESERVE_RE = re.compile(r"(?is)<(pre|textarea|script|style)\b[^>]*>.*?</\1\s*>")
_COMMENT_RE = re.compile(r"<!--(?!\[if).*?-->", re.DOTALL)
_WHITESPACE_RE = re.compile(r"\s+")
_BLOCK_TAGS = (
    "html|head|body|meta|link|title|base|script|style|noscript|header|footer|"
    "main|nav|section|article|aside|div|p|ul|ol|li|dl|dt|dd|table|thead|tbody|"
    "tfoot|tr|th|td|figure|figcaption|blockquote|pre|hr|br|h[1-6]|form|"
    "fieldset|details|summary|svg|!doctype"
)
_BLOCK_TAG_RE = re.compile(rf"\s*(</?(?:{_BLOCK_TAGS})\b[^>]*>)\s*", re.IGNORECASE)


def escape_html(text: str) -> str:
    """Escape special HTML characters in a string.

    Converts the following characters to their HTML entity equivalents:
    - & becomes &amp;
    - < becomes &lt;
    - > becomes &gt;
    - " becomes &quot;

    Args:
        text: The string to escape.

    Returns:
        The escaped string, safe for inclusion in HTML.

    Examples:
        >>> escape_html('<script>alert("XSS")</script>')
        '&lt;script&gt;alert(&quot;XSS&quot;)&lt;/script&gt;'
    """
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def is_full_url(url: str) -> bool:
    return url.startswith(("http://", "https://"))


def join_url(base_url: str, path: str) -> str:
    """Join a path onto a base URL, cleaning the resulting path.

    The joined path is normalized like a POSIX path, so trailing slashes are
    dropped except for the root.

    Args:
        base_url: Absolute base URL, e.g. https://example.com/blog.
        path: Path with or without a leading slash.

    Returns:
        Absolute URL.

    Examples:
        >>> join_url('https://example.com', '/about/')
        'https://example.com/about'

        >>> join_url('https://example.com', '/')
        'https://example.com/'
    """
    parts = urlsplit(base_url)
    joined = posixpath.normpath(posixpath.join(parts.path or "/", path.lstrip("/")))
    if joined.startswith("//"):
        joined = "/" + joined.lstrip("/")
    return urlunsplit((parts.scheme, parts.netloc, joined, "", ""))


def minify_html(html: str) -> str:
    """Minify an HTML document.

    Comments are removed (conditional comments are kept), whitespace runs are
    collapsed to one space and whitespace around block-level tags is dropped.
    The contents of pre, textarea, script and style elements are left
    untouched. Document, end tags and attribute values are preserved.

    Args:
        html: HTML to minify.

    Returns:
        Minified HTML.
    """
    keep: list[str] = []

    def stash(match: re.Match) -> str:
        keep.append(match.group(0))
        return f"\x00{len(keep) - 1}\x00"

    html = _PRESERVE_RE.sub(stash, html)
    html = _COMMENT_RE.sub("", html)
    html = _WHITESPACE_RE.sub(" ", html)
    html = _BLOCK_TAG_RE.sub(r"\1", html).strip()
    # Whitespace next to a stashed block belongs to the surrounding markup.
    html = re.sub(r"\s*(\x00\d+\x00)\s*", r"\1", html)
    return re.sub(r"\x00(\d+)\x00", lambda m: keep[int(m.group(1))], html)

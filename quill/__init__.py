"""Quill static site generator.

This package builds a personal website from a tree of content pages with JSON
front matter, Jinja2 layout templates and static files, and can serve the
result locally while rebuilding on every change.

Source tree layout:
- pages: HTML and Markdown content, each file starting with JSON front matter.
- templates: Layouts that wrap pages, chosen per page in the front matter.
- static: Files copied to the output, with content-hashed names and minified
  CSS, JavaScript and JSON.

The main entry points are build.build_site and server.DevServer; the CLI module
wraps both.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"

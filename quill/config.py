"""Build configuration for Quill.

A Config is supplied once per build or serve call and never mutated
afterwards. Values can come from code, from an optional quill.yaml file at the
project root, or from CLI flags layered on top with dataclasses.replace.

Key members:
- Config: Frozen dataclass holding every build setting.
- load_config: Loads quill.yaml into a Config with defaults applied.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

import yaml

CONFIG_FILENAME = "quill.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "title": "Untitled",
    "author": "Anonymous",
    "base_url": "https://example.com",
    "primary_url": "https://example.com",
    "src": ".",
    "dst": "build",
    "prod": False,
    "skip_feed": False,
    "vanity": False,
    "skip_fingerprint": ("robots.txt", "favicon.ico"),
}


def _check_site_url(name: str, value: str) -> None:
    parts = urlsplit(value)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise ValueError(f"{name} must be an absolute http(s) URL, got {value!r}")


@dataclass(frozen=True)
class Config:
    """Settings for one build.

    Attributes:
        title: Site title, used by the feed.
        author: Site author, used by the feed.
        base_url: Base URL of the site; absolute URLs are derived from it in
            production builds.
        primary_url: URL of the main site, used by vanity builds to link back.
        src: Directory holding the pages, templates and static roots.
        dst: Directory the site is written to.
        prod: Production build: drafts are excluded and url() returns
            absolute URLs.
        skip_feed: Do not write feed.xml.
        vanity: The site is a vanity import documentation site.
        skip_fingerprint: Patterns of static paths (relative to the static
            root) that keep their original names.
        feed_updated: Fixed "updated" timestamp for the feed.
    """

    title: str = DEFAULT_CONFIG["title"]
    author: str = DEFAULT_CONFIG["author"]
    base_url: str = DEFAULT_CONFIG["base_url"]
    primary_url: str = DEFAULT_CONFIG["primary_url"]
    src: Path = Path(DEFAULT_CONFIG["src"])
    dst: Path = Path(DEFAULT_CONFIG["dst"])
    prod: bool = False
    skip_feed: bool = False
    vanity: bool = False
    skip_fingerprint: tuple[str, ...] = DEFAULT_CONFIG["skip_fingerprint"]
    feed_updated: datetime | None = None

    def __post_init__(self) -> None:
        _check_site_url("base_url", self.base_url)
        _check_site_url("primary_url", self.primary_url)
        # Frozen: normalize through object.__setattr__.
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
        object.__setattr__(self, "primary_url", self.primary_url.rstrip("/"))
        object.__setattr__(self, "src", Path(self.src))
        object.__setattr__(self, "dst", Path(self.dst))
        object.__setattr__(self, "skip_fingerprint", tuple(self.skip_fingerprint))

    @property
    def pages_dir(self) -> Path:
        return self.src / "pages"

    @property
    def templates_dir(self) -> Path:
        return self.src / "templates"

    @property
    def static_dir(self) -> Path:
        return self.src / "static"

    @property
    def watch_dirs(self) -> tuple[Path, ...]:
        """Source roots the dev server watches for changes."""
        return (self.pages_dir, self.static_dir, self.templates_dir)


def load_config(project_root: Path) -> Config:
    """Load site configuration from quill.yaml.

    Args:
        project_root: Root directory of the project.

    Returns:
        Config with defaults applied for every key the file does not set.
        Relative src and dst paths are resolved against project_root.
    """
    config_path = project_root / CONFIG_FILENAME
    config = DEFAULT_CONFIG.copy()
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
            if isinstance(loaded, dict):
                config.update(loaded)
    known = {f.name for f in fields(Config)}
    values = {key: value for key, value in config.items() if key in known}
    values["src"] = project_root / values["src"]
    values["dst"] = project_root / values["dst"]
    return Config(**values)

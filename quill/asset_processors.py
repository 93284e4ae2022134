"""Asset processors for Quill.

This module contains one processor per kind of static file. CSS, JavaScript
and JSON are minified on copy; everything else is copied byte for byte.

Key classes:
- CSSProcessor: Minifies stylesheets with csscompressor.
- JSProcessor: Minifies scripts with rjsmin.
- JSONProcessor: Re-serializes JSON compactly.
- StaticAssetProcessor: Copies files without modification.
- AssetProcessorRegistry: Picks the processor for a file.
"""

from __future__ import annotations

import json
import shutil
from abc import ABC, abstractmethod
from pathlib import Path

import csscompressor
from rjsmin import jsmin


class BaseAssetProcessor(ABC):
    """Base class for asset processors.

    Provides shared utilities:
        - ensure_dest_dir: Creates parent directories for output files.
    """

    @property
    @abstractmethod
    def priority(self) -> int:
        """Return processor priority (higher = checked first)."""
        ...

    @abstractmethod
    def can_process(self, path: Path) -> bool:
        """Check if this processor can handle the given asset."""
        ...

    @abstractmethod
    def process(self, source: Path, dest: Path) -> None:
        """Process an asset file.

        Args:
            source: Source asset path.
            dest: Destination path for processed asset.
        """
        ...

    def ensure_dest_dir(self, dest: Path) -> None:
        dest.parent.mkdir(parents=True, exist_ok=True)


class _TextMinifier(BaseAssetProcessor):
    """Reads a UTF-8 text asset, minifies it and writes the result."""

    extension = ""

    @property
    def priority(self) -> int:
        return 50

    def can_process(self, path: Path) -> bool:
        return path.suffix.lower() == self.extension

    @abstractmethod
    def minify(self, text: str) -> str:
        ...

    def process(self, source: Path, dest: Path) -> None:
        self.ensure_dest_dir(dest)
        text = source.read_text(encoding="utf-8")
        dest.write_text(self.minify(text), encoding="utf-8")


class CSSProcessor(_TextMinifier):
    extension = ".css"

    def minify(self, text: str) -> str:
        return csscompressor.compress(text)


class JSProcessor(_TextMinifier):
    extension = ".js"

    def minify(self, text: str) -> str:
        return jsmin(text)


class JSONProcessor(_TextMinifier):
    """Minifies JSON; invalid JSON raises ValueError."""

    extension = ".json"

    def minify(self, text: str) -> str:
        return json.dumps(json.loads(text), separators=(",", ":"), ensure_ascii=False)


class StaticAssetProcessor(BaseAssetProcessor):
    """Copies static assets without modification.

    This is the fallback processor for assets that don't need
    special processing (images, fonts, SVGs, etc.).
    """

    @property
    def priority(self) -> int:
        return 0  # Lowest priority - fallback

    def can_process(self, path: Path) -> bool:
        return True

    def process(self, source: Path, dest: Path) -> None:
        self.ensure_dest_dir(dest)
        shutil.copyfile(source, dest)


class AssetProcessorRegistry:
    """Registry for managing asset processors.

    Processors are consulted in priority order; the first one that accepts a
    file processes it.
    """

    def __init__(self):
        self._processors: list[BaseAssetProcessor] = []

    def register(self, processor: BaseAssetProcessor) -> None:
        self._processors.append(processor)
        self._processors.sort(key=lambda p: p.priority, reverse=True)

    def get_processor(self, path: Path) -> BaseAssetProcessor | None:
        for processor in self._processors:
            if processor.can_process(path):
                return processor
        return None

    def process(self, source: Path, dest: Path) -> None:
        """Process an asset using the appropriate processor.

        Raises:
            ValueError: If no registered processor accepts the file.
        """
        processor = self.get_processor(source)
        if processor is None:
            raise ValueError(f"no asset processor for {source}")
        processor.process(source, dest)


def create_default_registry() -> AssetProcessorRegistry:
    """Create a registry with the default processors."""
    registry = AssetProcessorRegistry()
    registry.register(CSSProcessor())
    registry.register(JSProcessor())
    registry.register(JSONProcessor())
    registry.register(StaticAssetProcessor())
    return registry

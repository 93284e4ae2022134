"""Static asset pipeline for Quill.

Static files are processed in two passes per build. The hash pass runs before
any page is rendered and records, for every cacheable file, a name that embeds
a digest of its content; the static() template helper resolves paths through
that mapping. The copy pass runs last and writes every file under its
fingerprinted name, minifying CSS, JavaScript and JSON on the way.

Key members:
- fingerprint: Content digest of a file's bytes.
- fingerprinted_name: Insert a digest into a file name.
- AssetPipeline: Runs the hash and copy passes over a static directory.
"""

from __future__ import annotations

import fnmatch
import hashlib
import logging
import posixpath
from pathlib import Path

from .asset_processors import AssetProcessorRegistry, create_default_registry
from .errors import BuildError
from .utils import is_ignored, relative_posix, walk_files

logger = logging.getLogger(__name__)

DIGEST_LENGTH = 10


def fingerprint(data: bytes) -> str:
    """Return the content digest used in fingerprinted names.

    Args:
        data: Raw file bytes.

    Returns:
        First DIGEST_LENGTH hex characters of the SHA-256 digest.
    """
    return hashlib.sha256(data).hexdigest()[:DIGEST_LENGTH]


def fingerprinted_name(rel_path: str, digest: str) -> str:
    """Insert a digest before the extension of a slash-separated path.

    Examples:
        >>> fingerprinted_name("css/main.css", "abc123")
        'css/main-abc123.css'

        >>> fingerprinted_name("LICENSE", "abc123")
        'LICENSE-abc123'
    """
    directory, name = posixpath.split(rel_path)
    stem, ext = posixpath.splitext(name)
    return posixpath.join(directory, f"{stem}-{digest}{ext}")


class AssetPipeline:
    """Hashes and copies the files of a static directory.

    Attributes:
        static_dir: Directory containing source assets.
        skip_fingerprint: Patterns of relative paths that keep their names.
        static_paths: Relative source path to fingerprinted path, filled by
            hash().
        processor_registry: Registry of asset processors used by copy().
    """

    def __init__(
        self,
        static_dir: Path,
        skip_fingerprint: tuple[str, ...] = (),
        processor_registry: AssetProcessorRegistry | None = None,
    ):
        self.static_dir = static_dir
        self.skip_fingerprint = skip_fingerprint
        self.static_paths: dict[str, str] = {}
        self.processor_registry = processor_registry or create_default_registry()

    def _iter_files(self) -> list[Path]:
        if not self.static_dir.exists():
            return []
        try:
            return [p for p in walk_files(self.static_dir) if not is_ignored(p)]
        except OSError as exc:
            raise BuildError(self.static_dir, f"failed to read static files: {exc}", exc) from exc

    def _skipped(self, rel: str) -> bool:
        return any(fnmatch.fnmatchcase(rel, pattern) for pattern in self.skip_fingerprint)

    def hash(self) -> dict[str, str]:
        """Compute the fingerprinted name of every cacheable static file.

        Returns:
            The static_paths mapping.

        Raises:
            BuildError: If a file cannot be read.
        """
        self.static_paths = {}
        for path in self._iter_files():
            rel = relative_posix(path, self.static_dir)
            if self._skipped(rel):
                continue
            try:
                data = path.read_bytes()
            except OSError as exc:
                raise BuildError(path, f"failed to read: {exc}", exc) from exc
            self.static_paths[rel] = fingerprinted_name(rel, fingerprint(data))
        logger.debug("Fingerprinted %d static files", len(self.static_paths))
        return self.static_paths

    def copy(self, output_dir: Path) -> int:
        """Write every static file to the output directory.

        Files are written under their fingerprinted name, or their original
        relative path when they have none.

        Args:
            output_dir: Build output directory.

        Returns:
            Number of files written.

        Raises:
            BuildError: If a file cannot be read, minified or written.
        """
        count = 0
        for path in self._iter_files():
            rel = relative_posix(path, self.static_dir)
            dest = output_dir / self.static_paths.get(rel, rel)
            try:
                self.processor_registry.process(path, dest)
            except (OSError, ValueError) as exc:
                raise BuildError(path, f"failed to process static file: {exc}", exc) from exc
            count += 1
        logger.debug("Copied %d static files", count)
        return count

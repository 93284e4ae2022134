"""Exceptions raised by Quill.

Every failure inside a build is a BuildError tagged with the source file that
caused it. Front matter problems have one subclass per condition so callers
and tests can tell them apart.
"""

from __future__ import annotations

from pathlib import Path


class QuillError(Exception):
    """Base class for Quill errors."""


class BuildError(QuillError):
    """Error during site build with file context.

    Attributes:
        source_path: Path to the source file that caused the error.
        message: Human-readable error message.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        source_path: Path,
        message: str,
        original_error: Exception | None = None,
    ):
        self.source_path = source_path
        self.message = message
        self.original_error = original_error
        super().__init__(f"{source_path}: {message}")


class FrontMatterError(BuildError):
    """A content file's front matter is missing or invalid."""


class MissingFrontMatterError(FrontMatterError):
    def __init__(self, source_path: Path):
        super().__init__(source_path, "missing front matter")


class FrontMatterParseError(FrontMatterError):
    def __init__(self, source_path: Path, original_error: Exception):
        super().__init__(
            source_path,
            f"failed to parse front matter: {original_error}",
            original_error,
        )


class MissingParameterError(FrontMatterError):
    def __init__(self, source_path: Path, missing: list[str]):
        self.missing = missing
        super().__init__(
            source_path,
            "missing required front matter parameter: " + ", ".join(missing),
        )


class InvalidPermalinkError(FrontMatterError):
    def __init__(self, source_path: Path, permalink: str, reason: str):
        self.permalink = permalink
        super().__init__(source_path, f"invalid permalink {permalink!r}: {reason}")


class UnsupportedFormatError(FrontMatterError):
    """The content file's extension is not a supported page format."""

    def __init__(self, source_path: Path):
        super().__init__(source_path, f"format {source_path.suffix!r} unsupported")

"""Front matter extraction for Quill.

A content file starts with an optional preamble (for example an editor pragma
comment), then a JSON object whose opening and closing braces sit alone on
their own lines, then the page body:

    <!-- prettier-ignore-start -->
    {
      "title": "Hello, world!",
      "template": "layout",
      "permalink": "/hello-world"
    }
    <!-- prettier-ignore-end -->

    Hello!

The split is an explicit state machine over lines. Once the closing brace is
seen every following line is body, even if it is a lone brace.

Key members:
- SplitState: States of the line scanner.
- split_front_matter: Split raw text into the JSON block and the body.
"""

from __future__ import annotations

import enum
from pathlib import Path

from .errors import MissingFrontMatterError

OPEN_DELIM = "{"
CLOSE_DELIM = "}"


class SplitState(enum.Enum):
    BEFORE_BLOCK = "before_block"
    IN_BLOCK = "in_block"
    IN_BODY = "in_body"


class _LineKind(enum.Enum):
    OPEN = "open"
    CLOSE = "close"
    OTHER = "other"


class _Sink(enum.Enum):
    DROP = "drop"
    BLOCK = "block"
    BODY = "body"


# (state, line kind) -> (next state, where the line goes)
TRANSITIONS: dict[tuple[SplitState, _LineKind], tuple[SplitState, _Sink]] = {
    (SplitState.BEFORE_BLOCK, _LineKind.OPEN): (SplitState.IN_BLOCK, _Sink.BLOCK),
    (SplitState.BEFORE_BLOCK, _LineKind.CLOSE): (SplitState.BEFORE_BLOCK, _Sink.DROP),
    (SplitState.BEFORE_BLOCK, _LineKind.OTHER): (SplitState.BEFORE_BLOCK, _Sink.DROP),
    (SplitState.IN_BLOCK, _LineKind.OPEN): (SplitState.IN_BLOCK, _Sink.BLOCK),
    (SplitState.IN_BLOCK, _LineKind.CLOSE): (SplitState.IN_BODY, _Sink.BLOCK),
    (SplitState.IN_BLOCK, _LineKind.OTHER): (SplitState.IN_BLOCK, _Sink.BLOCK),
    (SplitState.IN_BODY, _LineKind.OPEN): (SplitState.IN_BODY, _Sink.BODY),
    (SplitState.IN_BODY, _LineKind.CLOSE): (SplitState.IN_BODY, _Sink.BODY),
    (SplitState.IN_BODY, _LineKind.OTHER): (SplitState.IN_BODY, _Sink.BODY),
}


def _iter_lines(text: str):
    if not text:
        return
    lines = text.split("\n")
    if text.endswith("\n"):
        lines.pop()
    for line in lines:
        yield line[:-1] if line.endswith("\r") else line


def _classify(line: str) -> _LineKind:
    if line == OPEN_DELIM:
        return _LineKind.OPEN
    if line == CLOSE_DELIM:
        return _LineKind.CLOSE
    return _LineKind.OTHER


def split_front_matter(text: str, source_path: Path) -> tuple[str, str]:
    """Split a content file into its front matter block and body.

    Every emitted line, block or body, ends with a newline.

    Args:
        text: Raw file content.
        source_path: Path of the file, used to tag errors.

    Returns:
        Tuple of (front matter JSON text including the braces, body text).

    Raises:
        MissingFrontMatterError: If no closed front matter block was found.
    """
    state = SplitState.BEFORE_BLOCK
    block: list[str] = []
    body: list[str] = []
    for line in _iter_lines(text):
        state, sink = TRANSITIONS[(state, _classify(line))]
        if sink is _Sink.BLOCK:
            block.append(line + "\n")
        elif sink is _Sink.BODY:
            body.append(line + "\n")
    if state is not SplitState.IN_BODY:
        raise MissingFrontMatterError(source_path)
    return "".join(block), "".join(body)

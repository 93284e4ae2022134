from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Sequence

from .content import Page


def date_descending(pages: Iterable[Page]) -> list[Page]:
    """Order pages newest first, dateless pages last.

    The sort is stable: pages with equal dates, and all dateless pages, keep
    the relative order they arrived in.
    """
    return sorted(
        pages,
        key=lambda p: (p.date is None, -p.date.timestamp() if p.date else 0.0),
    )


def discovery_order(pages: Iterable[Page]) -> list[Page]:
    """Keep pages in the order they were discovered."""
    return list(pages)


PageOrdering = Callable[[Iterable[Page]], list[Page]]


class PageCollection(Sequence[Page]):
    """Read-only, ordered view over the pages of one build."""

    def __init__(self, pages: Iterable[Page]):
        self._pages = tuple(pages)

    def __iter__(self) -> Iterator[Page]:
        return iter(self._pages)

    def __len__(self) -> int:
        return len(self._pages)

    def __getitem__(self, item):
        if isinstance(item, slice):
            return PageCollection(self._pages[item])
        return self._pages[item]

    def of_type(self, page_type: str) -> PageCollection:
        """Pages of one content type; all pages when page_type is empty."""
        if not page_type:
            return self
        return PageCollection(p for p in self._pages if p.type == page_type)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"PageCollection({len(self._pages)} pages)"

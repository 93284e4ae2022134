from datetime import datetime, timezone
from pathlib import Path

from quill.collections import PageCollection, date_descending, discovery_order
from quill.content import Page


def make_page(title, date=None, page_type="page", draft=False):
    return Page(
        title=title,
        permalink=f"/{title}",
        template="layout",
        path=Path(f"{title}.md"),
        dst_path=f"{title}/index.html",
        date=datetime(*date, tzinfo=timezone.utc) if date else None,
        type=page_type,
        draft=draft,
    )


def test_date_descending_is_newest_first_and_stable():
    pages = [
        make_page("undated-1"),
        make_page("old", (2021, 1, 1)),
        make_page("new-a", (2022, 5, 1)),
        make_page("undated-2"),
        make_page("new-b", (2022, 5, 1)),
    ]
    ordered = date_descending(pages)
    assert [p.title for p in ordered] == ["new-a", "new-b", "old", "undated-1", "undated-2"]


def test_date_descending_keeps_undated_discovery_order():
    pages = [make_page(name) for name in ("c", "a", "b")]
    assert [p.title for p in date_descending(pages)] == ["c", "a", "b"]


def test_discovery_order_copies():
    pages = [make_page("a"), make_page("b")]
    ordered = discovery_order(pages)
    assert ordered == pages
    assert ordered is not pages


def test_page_collection_filters():
    pages = PageCollection(
        [
            make_page("post", page_type="post"),
            make_page("about"),
            make_page("draft", page_type="post", draft=True),
        ]
    )
    assert len(pages) == 3
    assert [p.title for p in pages.of_type("post")] == ["post", "draft"]
    assert pages.of_type("") is pages
    assert [p.title for p in pages[:1]] == ["post"]
    assert isinstance(pages[:1], PageCollection)

from __future__ import annotations

import logging

import pytest

from docsite.nav import NavError, NavNode, auto_nav, build_nav, flatten, parse_nav, validate_nav
from docsite.pages import Page


def _pages(*srcs: str) -> dict[str, Page]:
    return {
        src: Page(src_path=src, title=f"T:{src}", markdown="", dest_path=src, url=src)
        for src in srcs
    }


def test_parse_nav_forms() -> None:
    tree = parse_nav(
        [
            "index.md",
            {"Guide": "guide/a.md"},
            {"Source": "https://github.com/example/repo"},
            {"Section": ["guide/b.md", {"Deep": "./guide/../guide/c.md"}]},
        ]
    )
    assert tree[0] == NavNode(label=None, page="index.md")
    assert tree[1] == NavNode(label="Guide", page="guide/a.md")
    assert tree[2].url == "https://github.com/example/repo"
    assert tree[3].is_section
    assert [c.page for c in tree[3].children] == ["guide/b.md", "guide/c.md"]


@pytest.mark.parametrize(
    "raw",
    [
        [{"A": "a.md", "B": "b.md"}],
        [{"A": 3}],
        [42],
        [""],
    ],
)
def test_parse_nav_rejects_bad_entries(raw: list) -> None:
    with pytest.raises(NavError):
        parse_nav(raw)


def test_validate_nav_lists_every_missing_reference() -> None:
    tree = parse_nav(["a.md", {"S": ["missing-1.md", "b.md"]}, {"X": "missing-2.md"}])
    with pytest.raises(NavError, match="missing-1.md, missing-2.md"):
        validate_nav(tree, _pages("a.md", "b.md"))


def test_validate_nav_logs_duplicates_and_unused(caplog: pytest.LogCaptureFixture) -> None:
    tree = parse_nav(["a.md", {"Again": "a.md"}])
    with caplog.at_level(logging.INFO, logger="docsite.nav"):
        validate_nav(tree, _pages("a.md", "orphan.md"))
    assert "referenced 2 times in nav: a.md" in caplog.text
    assert "not included in the nav: orphan.md" in caplog.text


def test_auto_nav_follows_directory_layout() -> None:
    tree = auto_nav(_pages("z.md", "index.md", "data-platform/pipelines.md", "data-platform/index.md", "a.md"))
    assert [n.page for n in tree[:3]] == ["index.md", "a.md", "z.md"]
    section = tree[3]
    assert section.label == "Data Platform"
    assert [c.page for c in section.children] == ["data-platform/index.md", "data-platform/pipelines.md"]


def test_build_nav_fills_labels_and_flattens() -> None:
    pages = _pages("a.md", "b.md", "c.md")
    tree = build_nav(["a.md", {"Section": [{"Bee": "b.md"}, "a.md"]}, {"Ext": "https://x.org"}], pages)
    assert tree[0].label == "T:a.md"
    assert tree[1].children[0].label == "Bee"
    assert flatten(tree) == ["a.md", "b.md"]

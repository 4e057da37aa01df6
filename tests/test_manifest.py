"""Tests for icons_manifest."""

from __future__ import annotations

from pathlib import Path

from icons_manifest import ManifestNode, build_tree, render_manifest, write_manifests
from icons_utils import RelativeLocation

LOCATIONS = [
    RelativeLocation((), "a"),
    RelativeLocation(("icons",), "b"),
    RelativeLocation(("icons", "sub"), "c"),
]


def test_build_tree_mirrors_directories() -> None:
    root = build_tree(LOCATIONS)

    assert root.icons == ["a"]
    assert list(root.children) == ["icons"]

    icons = root.children["icons"]
    assert icons.icons == ["b"]
    assert list(icons.children) == ["sub"]

    sub = icons.children["sub"]
    assert sub.icons == ["c"]
    assert sub.children == {}


def test_build_tree_ignores_input_order() -> None:
    assert build_tree(LOCATIONS) == build_tree(reversed(LOCATIONS))


def test_build_tree_of_nothing_is_an_empty_root() -> None:
    assert build_tree([]) == ManifestNode()


def test_render_manifest_references_only_direct_children() -> None:
    root = build_tree(LOCATIONS)

    assert render_manifest(root) == "/* eslint-disable */\nrequire('./a')\nrequire('./icons/index')\n"
    assert render_manifest(root.children["icons"], es6=True) == (
        "/* eslint-disable */\nimport './b'\nimport './sub/index'\n"
    )


def test_render_manifest_without_js_header() -> None:
    node = ManifestNode(icons=["c"])

    assert render_manifest(node, ext="ts") == "require('./c')\n"


def test_write_manifests(tmp_path: Path) -> None:
    written = write_manifests(build_tree(LOCATIONS), tmp_path, es6=True)

    assert written == [
        tmp_path / "index.js",
        tmp_path / "icons" / "index.js",
        tmp_path / "icons" / "sub" / "index.js",
    ]
    sub = (tmp_path / "icons" / "sub" / "index.js").read_text(encoding="utf-8")
    assert sub == "/* eslint-disable */\nimport './c'\n"
    root = (tmp_path / "index.js").read_text(encoding="utf-8")
    assert "./b" not in root
    assert "./c" not in root


def test_render_manifest_keeps_icon_and_directory_of_the_same_name_apart() -> None:
    root = build_tree([RelativeLocation((), "icons"), RelativeLocation(("icons",), "b")])

    assert render_manifest(root, es6=True) == (
        "/* eslint-disable */\nimport './icons'\nimport './icons/index'\n"
    )


def test_render_manifest_escapes_quotes_in_names() -> None:
    node = ManifestNode(icons=["o'clock"], children={"it's": ManifestNode(icons=["x"])})

    assert render_manifest(node) == (
        "/* eslint-disable */\nrequire('./o\\'clock')\nrequire('./it\\'s/index')\n"
    )

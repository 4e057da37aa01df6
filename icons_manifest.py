"""Nested index modules that load every icon below their directory."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List

from icons_template import escape_data
from icons_utils import RelativeLocation

MANIFEST_NAME = "index"


@dataclass
class ManifestNode:
    icons: List[str] = field(default_factory=list)
    children: Dict[str, "ManifestNode"] = field(default_factory=dict)


def build_tree(locations: Iterable[RelativeLocation]) -> ManifestNode:
    """Group locations by their first directory, recursing with it consumed.

    Locations are sorted first, so the tree does not depend on the order in
    which icons finished compiling.
    """
    node = ManifestNode()
    nested: Dict[str, List[RelativeLocation]] = {}

    for location in sorted(locations, key=lambda loc: (loc.dirs, loc.name)):
        if location.dirs:
            nested.setdefault(location.dirs[0], []).append(location.pop())
        else:
            node.icons.append(location.name)

    for dir_name, children in nested.items():
        node.children[dir_name] = build_tree(children)
    return node


def render_manifest(node: ManifestNode, es6: bool = False, ext: str = "js") -> str:
    lines = ["/* eslint-disable */"] if ext == "js" else []
    # Directories point at their index so an icon of the same name cannot shadow them.
    targets = node.icons + [f"{d}/{MANIFEST_NAME}" for d in node.children]
    for target in targets:
        target = escape_data(target)
        if es6:
            lines.append(f"import './{target}'")
        else:
            lines.append(f"require('./{target}')")
    lines.append("")
    return "\n".join(lines)


def write_manifests(
    node: ManifestNode,
    target: Path,
    es6: bool = False,
    ext: str = "js",
    _subdir: Path = Path(),
) -> List[Path]:
    """Write index.<ext> for this level and every child directory below it."""
    output = target / _subdir / f"{MANIFEST_NAME}.{ext}"
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(render_manifest(node, es6, ext), encoding="utf-8")
    logging.info(f"Generated {(_subdir / output.name).as_posix()}")

    written = [output]
    for dir_name, child in node.children.items():
        written.extend(write_manifests(child, target, es6, ext, _subdir / dir_name))
    return written

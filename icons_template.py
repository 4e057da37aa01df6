"""Render one compiled icon into module source through a ${variable} template."""

import re
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

from icons_utils import CompiledIcon, format_number

DEFAULT_SIZE = 16.0
DEFAULT_VIEW_BOX = "0 0 200 200"

PLACEHOLDER_RE = re.compile(r"\$\{(\w+)\}")
SVG_OPEN_RE = re.compile(r"^\s*<svg\b[^>]*>")
SVG_CLOSE_RE = re.compile(r"</svg>\s*$")

DEFAULT_TEMPLATE = """\
var icon = require('vue-svgicon')
icon.register({
  '${name}': {
    width: ${width},
    height: ${height},
    viewBox: ${viewBox},
    data: '${data}'
  }
})
"""

ES6_TEMPLATE = """\
import icon from 'vue-svgicon'
icon.register({
  '${name}': {
    width: ${width},
    height: ${height},
    viewBox: ${viewBox},
    data: '${data}'
  }
})
"""


def compile_template(template: str, values: Mapping[str, object]) -> str:
    """Single-pass substitution; unknown or falsy variables become ''."""

    def replace(m):
        value = values.get(m.group(1))
        return str(value) if value else ""

    return PLACEHOLDER_RE.sub(replace, template)


def load_template(path: Optional[Path] = None, es6: bool = False) -> str:
    if path is not None:
        return path.read_text(encoding="utf-8")
    return ES6_TEMPLATE if es6 else DEFAULT_TEMPLATE


def strip_wrapper(markup: str) -> str:
    """Drop the outer <svg ...> and </svg>, keeping only the icon body."""
    markup = SVG_OPEN_RE.sub("", markup, count=1)
    return SVG_CLOSE_RE.sub("", markup, count=1)


def escape_data(markup: str) -> str:
    # Escape backslashes first, then what would end a single-quoted literal
    return markup.replace("\\", "\\\\").replace("'", "\\'").replace("\n", "\\n")


def resolve_size(
    width: Optional[float], height: Optional[float], view_box: Optional[str]
) -> Tuple[float, float, str]:
    """Fill in the intrinsic size and view box an icon falls back to."""
    if not view_box:
        if width and height:
            view_box = f"0 0 {format_number(width)} {format_number(height)}"
        else:
            view_box = DEFAULT_VIEW_BOX
    return width or DEFAULT_SIZE, height or DEFAULT_SIZE, view_box


def icon_values(icon: CompiledIcon) -> Dict[str, str]:
    return {
        "name": escape_data(icon.location.path),
        "width": format_number(icon.width),
        "height": format_number(icon.height),
        "viewBox": f"'{icon.view_box}'",
        "data": escape_data(icon.data),
    }


def render_icon(icon: CompiledIcon, template: str) -> str:
    return compile_template(template, icon_values(icon))

import logging
import re
import string
from typing import Dict, List, Optional, Set, Union

from lxml import etree

from icons_utils import RelativeLocation, format_number

SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"
XLINK_HREF = f"{{{XLINK_NS}}}href"

# Every id that survives sanitizing lives under this prefix.
ID_PREFIX = "svgicon-"
ID_CHARS = string.ascii_lowercase + string.ascii_uppercase
FRAGMENT_CHARS = frozenset(string.ascii_letters + string.digits + "-")

REMOVED_ELEMENTS = ("title", "desc", "metadata", "style")
SHAPES = ("path", "rect", "circle", "polygon", "line", "polyline", "ellipse")
PAINT_ATTRS = ("fill", "stroke")

NUMBER_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
PLAIN_NUMBER_RE = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?\s*$")
POINTS_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
URL_REF_RE = re.compile(r"url\(\s*['\"]?#([^'\")\s]+)['\"]?\s*\)")
PREFIXED_ID_RE = re.compile(r"^" + re.escape(ID_PREFIX) + r"([A-Za-z]+)$")
PREFIXED_REF_RE = re.compile(r"#" + re.escape(ID_PREFIX) + r"([A-Za-z]+)(?![\w-])")


class SanitizeError(ValueError):
    """The asset is not a well-formed SVG document."""


def _tag(ns: Optional[str], local: str) -> str:
    return f"{{{ns}}}{local}" if ns else local


def _is_href(attr_name: str) -> bool:
    return attr_name in ("href", XLINK_HREF)


def _remove(elem):
    parent = elem.getparent()
    if parent is not None:
        parent.remove(elem)


def _number(value: Optional[str], default: Optional[float] = None) -> Optional[float]:
    """Parse a unitless number attribute, or return default when absent."""
    if value is None:
        return default
    if not PLAIN_NUMBER_RE.match(value):
        return None
    return float(value)


def _dimension(value: Optional[str]) -> Optional[float]:
    # Leading number only, so "24px" and "24" both give 24.
    if value is None:
        return None
    m = NUMBER_RE.match(value)
    if not m:
        return None
    return float(m.group(1))


def _view_box(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    parts = [p for p in re.split(r"[\s,]+", value.strip()) if p]
    if len(parts) != 4 or not all(PLAIN_NUMBER_RE.match(p) for p in parts):
        return None
    return " ".join(format_number(float(p)) for p in parts)


def _short_id(index: int) -> str:
    """0 -> a, 51 -> Z, 52 -> aa, ..."""
    name = ""
    index += 1
    while index:
        index, rem = divmod(index - 1, len(ID_CHARS))
        name = ID_CHARS[rem] + name
    return name


def namespace_fragment(location: RelativeLocation) -> str:
    """Encode a location into id-safe characters, injectively.

    Letters, digits and "-" pass through, "/" becomes "__" and any other
    character c becomes "_<hex(ord(c))>_".
    """
    parts = []
    for c in location.path:
        if c == "/":
            parts.append("__")
        elif c in FRAGMENT_CHARS:
            parts.append(c)
        else:
            parts.append(f"_{ord(c):x}_")
    return "".join(parts)


def _shape_to_path(elem, local: str) -> Optional[str]:
    """Path data equivalent to a basic shape, or None to leave it alone."""
    if local == "rect":
        if elem.get("rx") is not None or elem.get("ry") is not None:
            return None
        x, y = _number(elem.get("x"), 0.0), _number(elem.get("y"), 0.0)
        w, h = _number(elem.get("width")), _number(elem.get("height"))
        if None in (x, y, w, h):
            return None
        return (
            f"M{format_number(x)} {format_number(y)}"
            f"H{format_number(x + w)}V{format_number(y + h)}H{format_number(x)}z"
        )

    if local == "line":
        coords = [_number(elem.get(a), 0.0) for a in ("x1", "y1", "x2", "y2")]
        if None in coords:
            return None
        x1, y1, x2, y2 = (format_number(c) for c in coords)
        return f"M{x1} {y1}L{x2} {y2}"

    if local in ("polyline", "polygon"):
        coords = POINTS_RE.findall(elem.get("points", ""))
        if len(coords) < 4 or len(coords) % 2:
            return None
        pairs = [
            f"{format_number(float(coords[i]))} {format_number(float(coords[i + 1]))}"
            for i in range(0, len(coords), 2)
        ]
        d = "M" + "L".join(pairs)
        return d + "z" if local == "polygon" else d

    return None


SHAPE_GEOMETRY = {
    "rect": ("x", "y", "width", "height"),
    "line": ("x1", "y1", "x2", "y2"),
    "polyline": ("points",),
    "polygon": ("points",),
}


def _cleanup_ids(root):
    """Drop unreferenced ids, rename referenced ones to short prefixed names."""
    referenced: Set[str] = set()
    for elem in root.iter(tag=etree.Element):
        for attr_name, value in elem.attrib.items():
            if _is_href(attr_name) and value.startswith("#"):
                referenced.add(value[1:])
            referenced.update(URL_REF_RE.findall(value))

    names: Dict[str, str] = {}
    for elem in root.iter(tag=etree.Element):
        old = elem.get("id")
        if old is None:
            continue
        if old in referenced and old not in names:
            names[old] = ID_PREFIX + _short_id(len(names))
            elem.set("id", names[old])
        else:
            del elem.attrib["id"]

    def rename_url(m):
        new = names.get(m.group(1))
        return f"url(#{new})" if new else m.group(0)

    for elem in root.iter(tag=etree.Element):
        for attr_name, value in elem.attrib.items():
            if _is_href(attr_name) and value[1:] in names and value.startswith("#"):
                elem.set(attr_name, "#" + names[value[1:]])
            elif "url(" in value:
                elem.set(attr_name, URL_REF_RE.sub(rename_url, value))


class IconDocument:
    """A sanitized SVG tree plus the size information found on its root.

    annotate_shapes() and namespace_ids() rewrite the tree in place and may
    each be applied once; a second call raises RuntimeError.
    """

    def __init__(
        self,
        root,
        width: Optional[float],
        height: Optional[float],
        view_box: Optional[str],
    ):
        self.root = root
        self.width = width
        self.height = height
        self.view_box = view_box
        self._annotated = False
        self._namespaced = False

    def annotate_shapes(self) -> "IconDocument":
        if self._annotated:
            raise RuntimeError("Shapes have already been annotated")
        self._annotated = True

        pid = 0
        for elem in self.root.iter(tag=etree.Element):
            if elem is self.root:
                continue
            if etree.QName(elem).localname in SHAPES:
                elem.set("pid", str(pid))
                pid += 1
            for attr in PAINT_ATTRS:
                if attr in elem.attrib:
                    # "_fill" marks a default the renderer may override.
                    elem.set("_" + attr, elem.attrib.pop(attr))
        return self

    def namespace_ids(self, location: RelativeLocation) -> "IconDocument":
        if self._namespaced:
            raise RuntimeError("Identifiers have already been namespaced")
        self._namespaced = True

        fragment = namespace_fragment(location)

        def rename(m):
            return m.group(0).replace(
                ID_PREFIX + m.group(1), f"{ID_PREFIX}{fragment}-{m.group(1)}"
            )

        for elem in self.root.iter(tag=etree.Element):
            for attr_name, value in elem.attrib.items():
                if attr_name == "id":
                    new = PREFIXED_ID_RE.sub(rename, value)
                else:
                    new = PREFIXED_REF_RE.sub(rename, value)
                if new != value:
                    elem.set(attr_name, new)
        return self

    def ids(self) -> List[str]:
        return [e.get("id") for e in self.root.iter(tag=etree.Element) if e.get("id")]

    def markup(self) -> str:
        return etree.tostring(self.root, encoding="unicode")


def sanitize(text: Union[str, bytes]) -> IconDocument:
    if isinstance(text, str):
        text = text.encode("utf-8")

    parser = etree.XMLParser(
        remove_blank_text=True,
        remove_comments=True,
        remove_pis=True,
        resolve_entities="internal",
        no_network=True,
    )
    try:
        root = etree.fromstring(text, parser)
    except etree.XMLSyntaxError as e:
        raise SanitizeError(f"Malformed SVG: {e}") from e

    qname = etree.QName(root)
    if qname.localname != "svg" or qname.namespace not in (SVG_NS, None):
        raise SanitizeError(f"Root element is <{qname.localname}>, not <svg>")
    svg_ns = qname.namespace

    # Remove all elements and attributes with foreign namespaces, plus titles,
    # descriptions, metadata and style sheets.
    for elem in list(root.iter(tag=etree.Element)):
        elem_q = etree.QName(elem)
        if elem_q.namespace != svg_ns or elem_q.localname in REMOVED_ELEMENTS:
            _remove(elem)
            continue

        for attr_name in list(elem.attrib.keys()):
            if attr_name.startswith("{") and attr_name != XLINK_HREF:
                del elem.attrib[attr_name]

        # Clean up -inkscape CSS properties from style attribute
        if "style" in elem.attrib:
            style_parts = [
                part.strip()
                for part in elem.attrib["style"].split(";")
                if part.strip() and not part.strip().startswith("-inkscape")
            ]
            if style_parts:
                elem.attrib["style"] = "; ".join(style_parts)
            else:
                del elem.attrib["style"]

    # Definitions nobody can reference are useless.
    for defs in list(root.iter(_tag(svg_ns, "defs"))):
        for child in list(defs):
            if not isinstance(child.tag, str) or child.get("id") is None:
                defs.remove(child)
        if len(defs) == 0:
            _remove(defs)

    for elem in list(root.iter(tag=etree.Element)):
        local = etree.QName(elem).localname
        d = _shape_to_path(elem, local)
        if d is None:
            continue
        for attr_name in SHAPE_GEOMETRY[local]:
            elem.attrib.pop(attr_name, None)
        elem.tag = _tag(svg_ns, "path")
        elem.set("d", d)

    _cleanup_ids(root)
    etree.cleanup_namespaces(root)

    width = _dimension(root.get("width"))
    height = _dimension(root.get("height"))
    view_box = _view_box(root.get("viewBox"))
    if root.get("viewBox") and view_box is None:
        logging.debug("Ignoring malformed viewBox %r", root.get("viewBox"))

    return IconDocument(root, width, height, view_box)

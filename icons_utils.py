from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Optional, Tuple
import logging


COLORS = {
    "DEBUG": "\033[36m",  # cyan
    "INFO": "\033[32m",  # green
    "WARNING": "\033[33m",  # yellow
    "ERROR": "\033[31m",  # red
    "CRITICAL": "\033[1;31m",  # bold red
}
COLOR_RESET = "\033[0m"

SVG_SUFFIX = ".svg"


class ColorFormatter(logging.Formatter):
    def format(self, record):
        color = COLORS.get(record.levelname, "")
        record.levelname = f"{color}{record.levelname}{COLOR_RESET}"
        return super().format(record)


def setup_logging():
    handler = logging.StreamHandler()
    handler.setFormatter(ColorFormatter("%(levelname)s %(message)s"))
    logging.root.addHandler(handler)
    logging.root.setLevel(logging.INFO)


def format_number(value: float) -> str:
    """Render a coordinate compactly: 24.0 -> "24", 0.1 + 0.2 -> "0.3"."""
    value = round(value, 3)
    if value == 0:
        value = 0.0  # no "-0"
    s = repr(value)
    return s[:-2] if s.endswith(".0") else s


class BuildError(Exception):
    """A failure that stops the whole run (bad source root, unwritable target)."""


@dataclass(frozen=True)
class RelativeLocation:
    """Where an icon lives below the source root: directory components plus a base name."""

    dirs: Tuple[str, ...]
    name: str

    def __post_init__(self):
        if not self.name:
            raise ValueError(f"Icon name must not be empty (dirs={self.dirs})")
        if any(not d for d in self.dirs):
            raise ValueError(f"Empty directory component in {self.dirs}")

    @classmethod
    def from_path(cls, relative_path: PurePath) -> "RelativeLocation":
        name = relative_path.name
        if name.lower().endswith(SVG_SUFFIX):
            name = name[: -len(SVG_SUFFIX)]
        return cls(tuple(relative_path.parent.parts), name)

    @property
    def path(self) -> str:
        return "/".join(self.dirs + (self.name,))

    def pop(self) -> "RelativeLocation":
        return RelativeLocation(self.dirs[1:], self.name)


@dataclass(frozen=True)
class SourceAsset:
    path: Path
    location: RelativeLocation
    content: bytes


@dataclass(frozen=True)
class CompiledIcon:
    location: RelativeLocation
    width: float
    height: float
    view_box: str
    data: str


@dataclass(frozen=True)
class BuildConfig:
    source: Path
    target: Path
    ext: str = "js"
    template: Optional[Path] = None
    es6: bool = False
    jobs: Optional[int] = None
    timeout: Optional[float] = None

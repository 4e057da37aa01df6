#!python3
import argparse
import logging
import shutil
import sys
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from icons_manifest import MANIFEST_NAME, build_tree, write_manifests
from icons_svg import SanitizeError, sanitize
from icons_template import load_template, render_icon, resolve_size, strip_wrapper
from icons_utils import (
    SVG_SUFFIX,
    BuildConfig,
    BuildError,
    CompiledIcon,
    RelativeLocation,
    SourceAsset,
    setup_logging,
)


@dataclass
class BuildResult:
    icons: List[CompiledIcon] = field(default_factory=list)
    failed: List[Path] = field(default_factory=list)
    manifests: List[Path] = field(default_factory=list)


def scan(source: Path) -> List[Path]:
    """Find every SVG below source. Raises BuildError if source cannot be scanned."""
    if not source.is_dir():
        raise BuildError(f"Source path {source} is not a readable directory")
    try:
        return sorted(
            p for p in source.rglob("*") if p.is_file() and p.suffix.lower() == SVG_SUFFIX
        )
    except OSError as e:
        raise BuildError(f"Could not scan {source}: {e}") from e


def read_asset(path: Path, source: Path) -> SourceAsset:
    location = RelativeLocation.from_path(path.relative_to(source))
    return SourceAsset(path=path, location=location, content=path.read_bytes())


def clear_target(target: Path):
    """Delete the previous output, leaving an empty target directory."""
    try:
        if target.exists():
            shutil.rmtree(target)
        target.mkdir(parents=True)
    except OSError as e:
        raise BuildError(f"Could not prepare target {target}: {e}") from e


def compile_asset(asset: SourceAsset) -> CompiledIcon:
    if asset.location.name == MANIFEST_NAME:
        raise SanitizeError(f"Icon name {MANIFEST_NAME!r} is reserved for manifests")

    doc = sanitize(asset.content)
    doc.annotate_shapes()
    doc.namespace_ids(asset.location)

    width, height, view_box = resolve_size(doc.width, doc.height, doc.view_box)
    return CompiledIcon(
        location=asset.location,
        width=width,
        height=height,
        view_box=view_box,
        data=strip_wrapper(doc.markup()),
    )


def icon_path(icon: CompiledIcon, target: Path, ext: str) -> Path:
    return target.joinpath(*icon.location.dirs, f"{icon.location.name}.{ext}")


def write_icon(icon: CompiledIcon, template: str, target: Path, ext: str) -> Path:
    output = icon_path(icon, target, ext)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(render_icon(icon, template), encoding="utf-8")
    return output


def _process(
    path: Path, config: BuildConfig, template: str, abort: threading.Event
) -> CompiledIcon:
    icon = compile_asset(read_asset(path, config.source))
    if abort.is_set():
        raise BuildError(f"Build aborted before writing {icon.location.path}")
    write_icon(icon, template, config.target, config.ext)
    return icon


def _write_manifests(result: BuildResult, config: BuildConfig):
    tree = build_tree(icon.location for icon in result.icons)
    try:
        result.manifests = write_manifests(tree, config.target, config.es6, config.ext)
    except OSError as e:
        raise BuildError(f"Could not write manifests to {config.target}: {e}") from e


def build(config: BuildConfig) -> BuildResult:
    try:
        template = load_template(config.template, config.es6)
    except OSError as e:
        raise BuildError(f"Could not read template {config.template}: {e}") from e

    source, target = config.source.resolve(), config.target.resolve()
    if source == target or target in source.parents:
        raise BuildError(f"Target {target} would delete the source {source}")

    paths = scan(config.source)
    if not paths:
        logging.warning(f"No SVG files found in {config.source}")
    clear_target(config.target)

    result = BuildResult()
    pool = ThreadPoolExecutor(max_workers=config.jobs)
    abort = threading.Event()
    # Icons finish in any order; the manifests wait until every one is accounted for.
    try:
        futures = {pool.submit(_process, p, config, template, abort): p for p in paths}
        with logging_redirect_tqdm():
            pbar = tqdm(total=len(futures), desc="Compiling icons", unit=" icons")
            try:
                for future in as_completed(futures, timeout=config.timeout):
                    path = futures[future]
                    try:
                        icon = future.result()
                    except (ValueError, OSError) as e:
                        logging.error(f"Skipped {path}: {e}")
                        result.failed.append(path)
                    else:
                        logging.info(f"Generated icon: {icon.location.path}")
                        result.icons.append(icon)
                    pbar.update(1)
            finally:
                pbar.close()
    except TimeoutError as e:
        # Workers still running finish on their own but write nothing, and the
        # icons already written get manifests so the target stays consistent.
        abort.set()
        _write_manifests(result, config)
        raise BuildError(
            f"Timed out after {config.timeout}s with "
            f"{len(result.icons) + len(result.failed)}/{len(paths)} icons done"
        ) from e
    finally:
        abort.set()
        pool.shutdown(wait=False, cancel_futures=True)

    _write_manifests(result, config)
    return result


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Compile a tree of SVG files into icon modules and index manifests."
    )
    parser.add_argument(
        "-s", "--source", type=Path, required=True, help="SVG source path"
    )
    parser.add_argument(
        "-t", "--target", type=Path, required=True, help="Generated icon path"
    )
    parser.add_argument(
        "--ext", default="js", help="Generated file's extension (default: js)"
    )
    parser.add_argument(
        "--tpl", type=Path, help="The template file used to generate icon files"
    )
    parser.add_argument(
        "--es6", action="store_true", help="Use ES6 module imports"
    )
    parser.add_argument(
        "--jobs", type=int, default=None, help="Number of icons compiled in parallel"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Give up if compiling all icons takes longer than this many seconds. "
        "The process still exits only once stuck workers return.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)

    setup_logging()
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    cwd = Path.cwd()
    config = BuildConfig(
        source=(cwd / args.source).resolve(),
        target=(cwd / args.target).resolve(),
        ext=args.ext.lstrip("."),
        template=(cwd / args.tpl).resolve() if args.tpl else None,
        es6=args.es6,
        jobs=args.jobs,
        timeout=args.timeout,
    )

    try:
        result = build(config)
    except BuildError as e:
        logging.error(str(e))
        return 1

    print(f"Icons generated: {len(result.icons)}, manifests: {len(result.manifests)}")
    if result.failed:
        logging.warning(f"Skipped {len(result.failed)} SVG files.")
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())

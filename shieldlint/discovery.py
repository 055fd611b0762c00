"""File discovery for a Laravel project.

Walks the configured analysis paths, drops excluded and vendored files,
and partitions the rest by role into a ``ScanContext``.
"""

import fnmatch
import logging
import os
from pathlib import Path
from typing import Callable, Iterable

from shieldlint.analyzers.base import ScanContext

logger = logging.getLogger(__name__)

# Directories never worth descending into
SKIP_DIRS = {
    ".git", ".idea", ".vscode", "node_modules", "vendor", "storage",
    ".phpunit.cache", "__pycache__",
}

JS_EXTENSIONS = {".js", ".ts", ".jsx", ".tsx", ".vue"}

MAX_FILE_SIZE = 2 * 1024 * 1024  # 2MB


def exclusion_predicate(root: Path, patterns: Iterable[str]) -> Callable[[Path], bool]:
    """Predicate matching paths against glob patterns relative to ``root``."""
    patterns = [pattern.strip("/") for pattern in patterns if pattern.strip("/")]

    def is_excluded(path: Path) -> bool:
        try:
            relative = Path(path).resolve().relative_to(root.resolve()).as_posix()
        except ValueError:
            return False
        for pattern in patterns:
            # fnmatch's "*" also matches "/", so "vendor/*" covers nested files
            if fnmatch.fnmatch(relative, pattern):
                return True
            if relative == pattern or relative.startswith(pattern + "/"):
                return True
        return False

    return is_excluded


def discover_files(root: Path, paths: Iterable[str], is_excluded: Callable[[Path], bool]) -> list[Path]:
    """All candidate files under the analysis paths, sorted."""
    found: set[Path] = set()
    for entry in paths:
        base = root / entry
        if base.is_file():
            if not is_excluded(base):
                found.add(base)
            continue
        if not base.is_dir():
            logger.debug(f"Analysis path {entry} does not exist")
            continue
        for dirpath, dirnames, filenames in os.walk(base):
            dirnames[:] = sorted(d for d in dirnames if d not in SKIP_DIRS)
            for filename in filenames:
                path = Path(dirpath) / filename
                if is_excluded(path):
                    continue
                try:
                    if path.stat().st_size > MAX_FILE_SIZE:
                        logger.debug(f"Skipping large file {path}")
                        continue
                except OSError:
                    continue
                found.add(path)
    return sorted(found)


def _under(path: Path, root: Path, *parts: str) -> bool:
    try:
        path.relative_to(root.joinpath(*parts))
        return True
    except ValueError:
        return False


def build_context(root, paths_analyze: Iterable[str], excluded_paths: Iterable[str]) -> ScanContext:
    """Discover files under ``root`` and group them by role."""
    root = Path(root).resolve()
    is_excluded = exclusion_predicate(root, excluded_paths)
    files = discover_files(root, paths_analyze, is_excluded)

    php_files = [f for f in files if f.suffix == ".php" and not f.name.endswith(".blade.php")]
    blade_files = [f for f in files if f.name.endswith(".blade.php")]
    js_files = [f for f in files if f.suffix in JS_EXTENSIONS]

    context = ScanContext(
        root=root,
        php_files=tuple(php_files),
        route_files=tuple(f for f in php_files if _under(f, root, "routes")),
        controller_files=tuple(f for f in php_files if _under(f, root, "app", "Http", "Controllers")),
        model_files=tuple(f for f in php_files if _under(f, root, "app", "Models")),
        config_files=tuple(f for f in php_files if _under(f, root, "config")),
        blade_files=tuple(blade_files),
        js_files=tuple(js_files),
        exclude=is_excluded,
    )
    logger.info(
        f"Discovered {len(files)} files in {root} "
        f"({len(php_files)} PHP, {len(blade_files)} Blade, {len(js_files)} JS)"
    )
    return context

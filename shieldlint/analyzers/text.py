"""Line-oriented helpers for files outside the PHP parser's reach.

Templates, env files and route files scanned line by line go through
these helpers. Line indexes are 0-based; line numbers in findings are
1-based.
"""

import logging
import os
import re
from functools import lru_cache
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

MAX_SNIPPET_CHARS = 500

COMMENT_LINE = re.compile(r"^\s*(//|#|\*|/\*)")


def read_text(path) -> Optional[str]:
    """Whole file contents, or None when the file cannot be read."""
    try:
        return Path(path).read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.debug(f"Cannot read {path}: {e}")
        return None


def read_lines(path) -> list[str]:
    """File lines without line terminators; empty when unreadable."""
    content = read_text(path)
    if content is None:
        return []
    return content.splitlines()


def balanced_region_end(
    lines: list[str],
    start_line: int,
    open_char: str = "{",
    close_char: str = "}",
    max_scan_lines: int = 200,
) -> int:
    """Index of the line closing the region opened at ``start_line``.

    Counts ``open_char`` against ``close_char`` for at most ``max_scan_lines``
    lines. When the counter never returns to zero, the last line within that
    window containing ``close_char`` is used, then the last line of the file.
    Characters inside string literals are counted too.
    """
    if not lines:
        return 0
    last = len(lines) - 1
    start_line = min(max(start_line, 0), last)
    stop = min(len(lines), start_line + max(max_scan_lines, 1))

    depth = 0
    opened = False
    for index in range(start_line, stop):
        for char in lines[index]:
            if char == open_char:
                depth += 1
                opened = True
            elif char == close_char:
                depth -= 1
        if opened and depth <= 0:
            return index

    for index in range(stop - 1, start_line - 1, -1):
        if close_char in lines[index]:
            return index
    return last


def cached_lines(path) -> tuple[str, ...]:
    """Lines of ``path``, read once while the file's mtime and size are unchanged."""
    try:
        stat = os.stat(path)
    except OSError:
        return ()
    return _lines_for(str(path), stat.st_mtime_ns, stat.st_size)


@lru_cache(maxsize=256)
def _lines_for(path: str, mtime_ns: int, size: int) -> tuple[str, ...]:
    return tuple(read_lines(path))


def code_snippet(path, line_number: int, context_lines: int = 0) -> Optional[str]:
    """Text of the 1-based ``line_number``, with optional surrounding lines."""
    lines = cached_lines(path)
    if not lines or line_number < 1 or line_number > len(lines):
        return None
    start = max(0, line_number - 1 - context_lines)
    end = min(len(lines), line_number + context_lines)
    snippet = "\n".join(lines[start:end]).strip("\n")
    if len(snippet) > MAX_SNIPPET_CHARS:
        snippet = snippet[:MAX_SNIPPET_CHARS] + "..."
    return snippet


def is_comment_line(line: str) -> bool:
    return bool(COMMENT_LINE.match(line))


def find_line(lines: list[str], pattern, start: int = 0) -> Optional[int]:
    """Index of the first line at or after ``start`` matching ``pattern``."""
    regex = re.compile(pattern) if isinstance(pattern, str) else pattern
    for index in range(max(start, 0), len(lines)):
        if regex.search(lines[index]):
            return index
    return None


def parse_env_lines(lines: list[str]) -> dict[str, tuple[str, int]]:
    """``KEY=value`` pairs from an env file, mapped to (value, 1-based line)."""
    values: dict[str, tuple[str, int]] = {}
    for index, raw in enumerate(lines):
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        if key.startswith("export "):
            key = key[len("export "):].strip()
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
            value = value[1:-1]
        elif " #" in value:
            value = value.split(" #", 1)[0].rstrip()
        values[key] = (value, index + 1)
    return values

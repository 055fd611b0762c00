"""Finding suppression.

Two mechanisms drop findings before a rule's outcome is decided:

* an inline ``@shieldlint-ignore`` marker on the reported line or the line
  above it, optionally followed by a comma-separated list of rule ids;
* ``ignore_errors`` entries from the settings, matching findings of one rule
  by file path and/or message.
"""

import fnmatch
import re
from typing import Optional, Sequence

from pydantic import BaseModel, ConfigDict, model_validator

from shieldlint.analyzers.results import Finding

IGNORE_MARKER = re.compile(r"@shieldlint-ignore(?:[ \t]+([\w,-]+))?", re.IGNORECASE)


def marker_rule_ids(line: str) -> Optional[frozenset]:
    """Rule ids named by an ignore marker on ``line``.

    Returns None when the line has no marker and an empty set for a bare
    marker, which silences every rule.
    """
    match = IGNORE_MARKER.search(line)
    if match is None:
        return None
    names = match.group(1) or ""
    return frozenset(name.strip() for name in names.split(",") if name.strip())


def is_line_suppressed(lines: Sequence[str], line_number: int, rule_id: str) -> bool:
    """Whether ``rule_id`` is silenced at the 1-based ``line_number``."""
    for number in (line_number, line_number - 1):
        if not 1 <= number <= len(lines):
            continue
        ids = marker_rule_ids(lines[number - 1])
        if ids is not None and (not ids or rule_id in ids):
            return True
    return False


class IgnoreRule(BaseModel):
    """One configured ignore entry for a rule.

    Every key that is set must match. Paths are project-relative; a leading
    slash is accepted. Patterns use shell wildcards.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    path: Optional[str] = None
    path_pattern: Optional[str] = None
    message: Optional[str] = None
    message_pattern: Optional[str] = None

    @model_validator(mode="after")
    def check_keys(self) -> "IgnoreRule":
        if self.path is not None and self.path_pattern is not None:
            raise ValueError("path and path_pattern cannot be combined")
        if self.message is not None and self.message_pattern is not None:
            raise ValueError("message and message_pattern cannot be combined")
        if all(value is None for value in (self.path, self.path_pattern, self.message, self.message_pattern)):
            raise ValueError("an ignore entry needs path, path_pattern, message or message_pattern")
        return self

    def matches(self, finding: Finding) -> bool:
        file_path = finding.location.file_path.lstrip("/")
        if self.path is not None and file_path != self.path.lstrip("/"):
            return False
        if self.path_pattern is not None and not (
            fnmatch.fnmatchcase(file_path, self.path_pattern)
            or fnmatch.fnmatchcase("/" + file_path, self.path_pattern)
        ):
            return False
        if self.message is not None and finding.message != self.message:
            return False
        if self.message_pattern is not None and not fnmatch.fnmatchcase(finding.message, self.message_pattern):
            return False
        return True

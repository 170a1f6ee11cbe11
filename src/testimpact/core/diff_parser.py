"""Unified diff parsing into per-file change structure."""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

logger = logging.getLogger(__name__)


class ChangeType(Enum):
    """How a file was touched by a commit."""
    ADD = "ADD"
    MOD = "MOD"
    DEL = "DEL"


@dataclass(frozen=True)
class ChangedLine:
    """A single added or removed line.

    ``line_number`` is a position in the new file for added lines and in the
    old file for deleted lines (``is_deleted=True``).
    """
    line_number: int
    content: str
    is_deleted: bool = False


@dataclass(frozen=True)
class Hunk:
    """A contiguous region of change as reported by the diff header."""
    old_start: int
    old_lines: int
    new_start: int
    new_lines: int

    @property
    def new_span(self) -> Tuple[int, int]:
        """Closed new-file span; a pure deletion collapses to the point ``new_start``."""
        return self.new_start, self.new_start + max(self.new_lines - 1, 0)

    def overlaps(self, start: int, end: int) -> bool:
        """Closed-interval overlap of ``[start, end]`` with the new span."""
        hunk_start, hunk_end = self.new_span
        return hunk_start <= end and start <= hunk_end

    def contains(self, start: int, end: int) -> bool:
        """Whether ``[start, end]`` lies within ``new_start .. new_start + new_lines``."""
        return start >= self.new_start and end <= self.new_start + self.new_lines


@dataclass
class FileDiff:
    """All changes a commit made to one file."""
    file_path: str
    change_type: ChangeType
    changed_lines: List[ChangedLine] = field(default_factory=list)
    hunks: List[Hunk] = field(default_factory=list)

    @property
    def added_lines(self) -> List[ChangedLine]:
        return [line for line in self.changed_lines if not line.is_deleted]

    @property
    def deleted_lines(self) -> List[ChangedLine]:
        return [line for line in self.changed_lines if line.is_deleted]


@dataclass
class _FileAccumulator:
    """Mutable parse state for the file currently being read."""
    old_path: str
    new_path: str
    change_type: ChangeType = ChangeType.MOD
    mode_marker: Optional[ChangeType] = None
    null_marker: Optional[ChangeType] = None
    in_header: bool = True
    current_old: int = 0
    current_new: int = 0
    changed_lines: List[ChangedLine] = field(default_factory=list)
    hunks: List[Hunk] = field(default_factory=list)

    def to_file_diff(self) -> FileDiff:
        path = self.old_path if self.change_type is ChangeType.DEL else self.new_path
        return FileDiff(
            file_path=path,
            change_type=self.change_type,
            changed_lines=self.changed_lines,
            hunks=self.hunks
        )


class DiffParser:
    """Parses zero-context unified diffs (``git diff -U0``) into FileDiff records."""

    DIFF_GIT_PATTERN = re.compile(r'^diff --git "?a/(.*?)"? "?b/(.*?)"?$')
    NEW_FILE_MODE_PATTERN = re.compile(r'^new file mode \d+$')
    DELETED_FILE_MODE_PATTERN = re.compile(r'^deleted file mode \d+$')
    HUNK_HEADER_PATTERN = re.compile(r'^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@')

    ENCODINGS = ('utf-8', 'latin1', 'cp1252')

    def parse(self, diff_text: str) -> List[FileDiff]:
        """Parse raw diff text into an ordered list of FileDiff records."""
        files: List[FileDiff] = []
        current: Optional[_FileAccumulator] = None

        for line in diff_text.splitlines():
            header_match = self.DIFF_GIT_PATTERN.match(line)
            if header_match:
                if current:
                    files.append(self._finish(current))
                current = _FileAccumulator(
                    old_path=_unquote(header_match.group(1)),
                    new_path=_unquote(header_match.group(2))
                )
                continue

            # Anything before the first file header is preamble
            if current is None:
                continue

            hunk_match = self.HUNK_HEADER_PATTERN.match(line)
            if hunk_match:
                self._open_hunk(current, hunk_match)
                continue

            if current.in_header:
                self._parse_header_line(current, line)
            else:
                self._parse_content_line(current, line)

        if current:
            files.append(self._finish(current))

        return files

    def parse_file(self, diff_path: str) -> List[FileDiff]:
        """Parse a saved patch file, trying several encodings."""
        for encoding in self.ENCODINGS:
            try:
                with open(diff_path, 'r', encoding=encoding) as f:
                    return self.parse(f.read())
            except UnicodeDecodeError:
                continue
        raise ValueError(f"Could not decode {diff_path} with any supported encoding")

    def _parse_header_line(self, current: _FileAccumulator, line: str):
        """Handle mode and path markers between ``diff --git`` and the first hunk."""
        if self.NEW_FILE_MODE_PATTERN.match(line):
            current.mode_marker = ChangeType.ADD
        elif self.DELETED_FILE_MODE_PATTERN.match(line):
            current.mode_marker = ChangeType.DEL
        elif line.startswith('--- '):
            target = line[4:].rstrip('\t')
            if target == '/dev/null':
                current.null_marker = ChangeType.ADD
            else:
                current.old_path = _strip_prefix(_unquote(target), 'a/')
        elif line.startswith('+++ '):
            target = line[4:].rstrip('\t')
            if target == '/dev/null':
                current.null_marker = ChangeType.DEL
            else:
                current.new_path = _strip_prefix(_unquote(target), 'b/')

    def _open_hunk(self, current: _FileAccumulator, match: 're.Match'):
        """Start a new hunk and reset the running line cursors."""
        if current.in_header:
            current.in_header = False
            current.change_type = self._resolve_change_type(current)

        old_start = int(match.group(1))
        old_lines = int(match.group(2)) if match.group(2) is not None else 1
        new_start = int(match.group(3))
        new_lines = int(match.group(4)) if match.group(4) is not None else 1

        current.hunks.append(Hunk(old_start, old_lines, new_start, new_lines))
        current.current_old = old_start
        current.current_new = new_start

    def _parse_content_line(self, current: _FileAccumulator, line: str):
        """Record added and removed lines of the open hunk."""
        if not line:
            return

        marker = line[0]
        if marker == '+':
            if current.change_type is not ChangeType.DEL:
                current.changed_lines.append(ChangedLine(current.current_new, line[1:]))
            current.current_new += 1
        elif marker == '-':
            # Deleted content is kept for removed-test detection in MOD files too
            current.changed_lines.append(ChangedLine(current.current_old, line[1:], is_deleted=True))
            current.current_old += 1
        elif marker == ' ':
            current.current_old += 1
            current.current_new += 1
        # '\ No newline at end of file' carries no line

    def _finish(self, current: _FileAccumulator) -> FileDiff:
        if current.in_header:
            # No hunks at all (binary, rename-only, mode change)
            current.change_type = self._resolve_change_type(current)
        return current.to_file_diff()

    def _resolve_change_type(self, current: _FileAccumulator) -> ChangeType:
        """Derive the change type once from the header markers."""
        mode, null = current.mode_marker, current.null_marker
        if mode and null and mode is not null:
            logger.warning(
                "Conflicting diff header markers for %s: file mode says %s, /dev/null says %s",
                current.new_path, mode.value, null.value
            )
        return mode or null or ChangeType.MOD


def _strip_prefix(path: str, prefix: str) -> str:
    return path[len(prefix):] if path.startswith(prefix) else path


def _unquote(path: str) -> str:
    """Undo git's C-style quoting of unusual paths."""
    if len(path) >= 2 and path.startswith('"') and path.endswith('"'):
        path = path[1:-1]
    if '\\' not in path:
        return path
    try:
        return path.encode('latin1').decode('unicode_escape').encode('latin1').decode('utf-8')
    except (UnicodeEncodeError, UnicodeDecodeError):
        return path

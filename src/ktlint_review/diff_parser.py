"""Unified diff scanners.

Two kinds of diff flow through this module:

* PR patches (one file's hunks as returned by the hosting API or ``git diff``),
  scanned to find which new-file lines were added or are visible in the diff.
* Correction diffs (original source -> ``ktlint --format`` output), scanned to
  find replaced line spans that can be offered as review suggestions.

Both scanners walk the diff once, tracking a line counter that is reset by
each hunk header.
"""

from __future__ import annotations

import difflib
import io
import re
from dataclasses import dataclass, field

_HUNK_RE = re.compile(
    r"^@@ -(?P<old_start>\d+)(?:,(?P<old_count>\d+))? \+(?P<new_start>\d+)(?:,(?P<new_count>\d+))? @@"
)


def _split_lines(text: str) -> list[str]:
    r"""Split on "\n" only, the way ktlint and git number lines.

    ``str.splitlines`` also breaks on form feeds, ``\u2028`` and friends,
    which shifts every later line number.
    """
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def _scan_new_lines(patch: str, include_context: bool) -> set[int]:
    lines: set[int] = set()
    current: int | None = None

    for raw in _split_lines(patch):
        m = _HUNK_RE.match(raw)
        if m:
            current = int(m.group("new_start"))
            continue

        # file headers (diff --git, index, ---, +++) precede the first hunk
        if current is None:
            continue

        # whitespace-stripped patches turn blank context lines into ""
        prefix = raw[0] if raw else " "
        if prefix == "+":
            lines.add(current)
            current += 1
        elif prefix == " ":
            if include_context:
                lines.add(current)
            current += 1
        # "-" lines and "\ No newline at end of file" leave the counter alone

    return lines


def parse_added_lines(patch: str) -> set[int]:
    """Return the new-file line numbers added by a unified diff patch."""
    return _scan_new_lines(patch, include_context=False)


def parse_commentable_lines(patch: str) -> set[int]:
    """Return new-file line numbers present in the patch (added or context).

    Review APIs only accept inline comments on these lines.
    """
    return _scan_new_lines(patch, include_context=True)


@dataclass(frozen=True)
class Correction:
    """A span of original lines and the text ktlint would replace them with.

    ``start_line`` and ``end_line`` are 1-based and inclusive.
    """

    start_line: int
    end_line: int
    replacement: tuple[str, ...] = field(default_factory=tuple)

    def covers(self, line: int) -> bool:
        return self.start_line <= line <= self.end_line

    @property
    def suggestion(self) -> str:
        return "\n".join(self.replacement)


class _Block:
    """Accumulates one run of -/+ lines inside a hunk."""

    def __init__(self, old_line: int):
        self.old_line = old_line
        self.removed: list[str] = []
        self.added: list[str] = []

    def __bool__(self) -> bool:
        return bool(self.removed or self.added)


def _close_block(block: _Block, original_lines: list[str] | None) -> Correction | None:
    if not block:
        return None

    if block.removed:
        start = block.old_line - len(block.removed)
        return Correction(start, block.old_line - 1, tuple(block.added))

    # Pure insertion: anchor the suggestion on a neighbouring original line.
    if block.old_line > 1:
        anchor = block.old_line - 1
        anchor_text = _original_line(original_lines, anchor)
        return Correction(anchor, anchor, (anchor_text, *block.added))

    anchor_text = _original_line(original_lines, 1)
    return Correction(1, 1, (*block.added, anchor_text))


def _original_line(original_lines: list[str] | None, line: int) -> str:
    if original_lines is None or line > len(original_lines):
        return ""
    return original_lines[line - 1]


def parse_corrections(diff: str, original: str | None = None) -> list[Correction]:
    """Extract correction spans from a unified diff of original -> formatted.

    Args:
        diff: Unified diff text, typically produced with zero context lines.
        original: The original source. Needed to anchor pure insertions on a
            neighbouring line; without it the anchor text is empty.

    Returns:
        Corrections in original-file order.
    """
    original_lines = _split_lines(original) if original is not None else None
    corrections: list[Correction] = []
    block: _Block | None = None
    old_line: int | None = None

    for raw in _split_lines(diff):
        m = _HUNK_RE.match(raw)
        if m:
            if block is not None:
                correction = _close_block(block, original_lines)
                if correction:
                    corrections.append(correction)
            old_start = int(m.group("old_start"))
            old_count = m.group("old_count")
            # "-N,0" means the insertion happens after line N
            old_line = old_start + 1 if old_count == "0" else old_start
            block = _Block(old_line)
            continue

        if old_line is None or block is None:
            continue

        prefix = raw[0] if raw else " "
        if prefix == "-":
            if block.added:
                correction = _close_block(block, original_lines)
                if correction:
                    corrections.append(correction)
                block = _Block(old_line)
            block.removed.append(raw[1:])
            old_line += 1
            block.old_line = old_line
        elif prefix == "+":
            block.added.append(raw[1:])
        elif prefix == " ":
            correction = _close_block(block, original_lines)
            if correction:
                corrections.append(correction)
            old_line += 1
            block = _Block(old_line)

    if block is not None:
        correction = _close_block(block, original_lines)
        if correction:
            corrections.append(correction)

    return corrections


def build_correction_diff(path: str, original: str, formatted: str) -> str:
    """Return a zero-context unified diff from original to formatted text."""
    diff = difflib.unified_diff(
        io.StringIO(original).readlines(),
        io.StringIO(formatted).readlines(),
        fromfile=f"a/{path}",
        tofile=f"b/{path}",
        n=0,
    )
    return "".join(line if line.endswith("\n") else line + "\n" for line in diff)


def find_correction(corrections: list[Correction], line: int) -> Correction | None:
    """Return the correction whose span covers line, if any."""
    for correction in corrections:
        if correction.covers(line):
            return correction
    return None

"""
Patch engine — renders a proposal against the original snapshot, builds
the review diff, and writes the result atomically with a sibling backup.
"""

from __future__ import annotations

import difflib
import logging
import os
import shutil
import tempfile

from ..errors import WriteFailed
from ..models import (
    ApplyResult, DiffOp, DiffSegment, DiffView, EditProposal, ProposalKind,
    SourceFile, split_lines,
)

logger = logging.getLogger(__name__)


class PatchEngine:
    """Diff and apply :class:`EditProposal` objects for one file."""

    def __init__(self, backup: bool = True, backup_suffix: str = ".bak") -> None:
        self._backup = backup
        self._backup_suffix = backup_suffix

    # ------------------------------------------------------------------
    # Content reconstruction
    # ------------------------------------------------------------------

    def render(self, original: SourceFile, proposal: EditProposal) -> str:
        """Full new content implied by *proposal*.

        Hunks are spliced in one pass over the untouched snapshot, in
        ascending ``start_line`` order, so line numbers never drift.
        """
        if proposal.kind is ProposalKind.FULL_REPLACE:
            return proposal.payload

        lines = original.lines
        newline = original.newline
        out: list[str] = []
        cursor = 0  # next original line (0-indexed) not yet emitted

        for hunk in sorted(proposal.hunks, key=lambda h: h.start_line):
            start = hunk.start_line - 1
            end = min(hunk.end_line, len(lines))
            out.extend(lines[cursor:start])

            replacement = hunk.replacement_lines
            if replacement:
                if out and not out[-1].endswith("\n"):
                    out[-1] += newline
                out.extend(line + newline for line in replacement)
            cursor = max(cursor, end)

        out.extend(lines[cursor:])
        content = "".join(out)

        # Keep a missing trailing newline missing
        if original.text and not original.ends_with_newline and content.endswith(newline):
            content = content[:-len(newline)]
        return content

    # ------------------------------------------------------------------
    # Review diff
    # ------------------------------------------------------------------

    def diff(self, original: SourceFile, proposal: EditProposal) -> DiffView:
        """Line-level alignment of original vs. proposed content.

        Display only: :meth:`apply` never consumes the result.
        """
        old_lines = original.lines
        new_lines = split_lines(self.render(original, proposal))

        matcher = difflib.SequenceMatcher(None, old_lines, new_lines, autojunk=False)
        segments: list[DiffSegment] = []
        for tag, i1, i2, j1, j2 in matcher.get_opcodes():
            if tag == "equal":
                segments.append(DiffSegment(DiffOp.EQUAL, "".join(old_lines[i1:i2])))
                continue
            if i2 > i1:
                segments.append(DiffSegment(DiffOp.DELETE, "".join(old_lines[i1:i2])))
            if j2 > j1:
                segments.append(DiffSegment(DiffOp.INSERT, "".join(new_lines[j1:j2])))

        return DiffView(path=original.path, segments=tuple(segments))

    # ------------------------------------------------------------------
    # Apply
    # ------------------------------------------------------------------

    def apply(self, original: SourceFile, proposal: EditProposal) -> ApplyResult:
        """Write *proposal* to ``original.path``.

        The backup is written from the snapshot bytes, then the new
        content goes to a temp file in the same directory and is renamed
        over the target.  On any ``OSError`` the target is left exactly as
        it was and :class:`WriteFailed` is raised.  A symlinked path is
        resolved first so the link survives and its target is updated.
        """
        data = self.render(original, proposal).encode("utf-8")
        target = os.path.realpath(original.path)
        backup_path: str | None = None

        try:
            if self._backup:
                candidate = original.path + self._backup_suffix
                self._safe_write(candidate, original.original_content, mode_source=target)
                backup_path = candidate
                logger.info("[Apply] Backup written to %s", backup_path)

            self._safe_write(target, data, mode_source=target)
        except OSError as exc:
            logger.error("[Apply] Write failed for %s: %s", target, exc)
            result = ApplyResult(applied=False, bytes_written=0, backup_path=backup_path)
            raise WriteFailed(target, exc, result) from exc

        logger.info("[Apply] Wrote %d bytes to %s", len(data), target)
        return ApplyResult(applied=True, bytes_written=len(data), backup_path=backup_path)

    # ------------------------------------------------------------------
    # Atomic file write
    # ------------------------------------------------------------------

    @staticmethod
    def _safe_write(path: str, data: bytes, mode_source: str | None = None) -> None:
        """Write bytes to *path* atomically via temp file + rename."""
        directory = os.path.dirname(os.path.abspath(path))
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".llmedit_", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            if mode_source and os.path.exists(mode_source):
                shutil.copymode(mode_source, tmp_path)
            os.replace(tmp_path, path)
        except BaseException:
            # Clean up temp file on failure, including interrupts
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

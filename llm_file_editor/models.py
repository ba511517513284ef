"""
Core value types shared by the parser, patch engine and session.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum

from .errors import FileNotFound, NotUTF8


def split_lines(text: str) -> list[str]:
    """Split *text* on ``\\n`` only, keeping line endings.

    ``str.splitlines`` also breaks on form feeds and unicode separators,
    which would shift line numbers relative to what an editor shows.
    """
    if not text:
        return []
    parts = text.split("\n")
    lines = [p + "\n" for p in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


@dataclass(frozen=True)
class SourceFile:
    """Immutable snapshot of the target file, taken once per session."""
    path: str
    original_content: bytes

    @classmethod
    def read(cls, path: str) -> "SourceFile":
        """Read *path* once and release the handle immediately."""
        try:
            with open(path, "rb") as f:
                data = f.read()
        except FileNotFoundError:
            raise FileNotFound(f"{path} does not exist") from None
        except IsADirectoryError:
            raise FileNotFound(f"{path} is a directory") from None
        except OSError as exc:
            raise FileNotFound(f"cannot read {path}: {exc}") from exc

        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise NotUTF8(f"{path} is not valid UTF-8 (byte {exc.start})") from None
        if "\x00" in text:
            raise NotUTF8(f"{path} looks like a binary file")
        return cls(path=os.path.abspath(path), original_content=data)

    @property
    def text(self) -> str:
        return self.original_content.decode("utf-8")

    @property
    def lines(self) -> list[str]:
        return split_lines(self.text)

    @property
    def line_count(self) -> int:
        return len(self.lines)

    @property
    def newline(self) -> str:
        """Line terminator used by the file (``\\n`` when undetermined)."""
        first = self.text.find("\n")
        if first > 0 and self.text[first - 1] == "\r":
            return "\r\n"
        return "\n"

    @property
    def ends_with_newline(self) -> bool:
        return self.original_content.endswith(b"\n")


# ── Edit proposals ──

class ProposalKind(str, Enum):
    FULL_REPLACE = "FullReplace"
    HUNK_SET = "HunkSet"


@dataclass(frozen=True)
class Hunk:
    """Replace original lines ``start_line..end_line`` (1-indexed, inclusive)."""
    start_line: int
    end_line: int
    replacement_text: str = ""

    @property
    def replacement_lines(self) -> list[str]:
        """Replacement split into lines without terminators.

        A final line terminator is optional; ``"\\n"`` is one empty line.
        """
        if not self.replacement_text:
            return []
        text = self.replacement_text.replace("\r\n", "\n")
        if text.endswith("\n"):
            text = text[:-1]
        return text.split("\n")

    @property
    def is_deletion(self) -> bool:
        return not self.replacement_text


@dataclass(frozen=True)
class EditProposal:
    kind: ProposalKind
    payload: str | tuple[Hunk, ...]

    @classmethod
    def full_replace(cls, content: str) -> "EditProposal":
        return cls(kind=ProposalKind.FULL_REPLACE, payload=content)

    @classmethod
    def hunk_set(cls, hunks) -> "EditProposal":
        ordered = tuple(sorted(hunks, key=lambda h: (h.start_line, h.end_line)))
        return cls(kind=ProposalKind.HUNK_SET, payload=ordered)

    @property
    def hunks(self) -> tuple[Hunk, ...]:
        if self.kind is not ProposalKind.HUNK_SET:
            return ()
        return self.payload


# ── Diff view ──

class DiffOp(str, Enum):
    EQUAL = "Equal"
    INSERT = "Insert"
    DELETE = "Delete"


@dataclass(frozen=True)
class DiffSegment:
    op: DiffOp
    text: str

    @property
    def lines(self) -> list[str]:
        return [l.rstrip("\r\n") for l in split_lines(self.text)]


@dataclass(frozen=True)
class DiffView:
    """Read-only rendering of original vs. proposed content."""
    path: str
    segments: tuple[DiffSegment, ...] = ()

    @property
    def has_changes(self) -> bool:
        return any(s.op is not DiffOp.EQUAL for s in self.segments)

    @property
    def insertions(self) -> int:
        return sum(len(s.lines) for s in self.segments if s.op is DiffOp.INSERT)

    @property
    def deletions(self) -> int:
        return sum(len(s.lines) for s in self.segments if s.op is DiffOp.DELETE)


@dataclass
class ApplyResult:
    """Outcome of writing a proposal to disk."""
    applied: bool = False
    bytes_written: int = 0
    backup_path: str | None = None

"""
Response parser — turns raw model text into an :class:`EditProposal`.

Two structures are recognised:

* a fenced code block holding the complete new file (``FullReplace``);
* one or more hunk blocks addressing explicit original line ranges::

      <<<<<<< REPLACE lines 12-14
      new line 12
      new line 13
      >>>>>>> END

  ``line N`` is shorthand for ``lines N-N``.  Ranges are inclusive and
  1-indexed; ``len(file) + 1`` addresses the position after the last
  line, so a hunk there appends.  The body between the header line and
  the END line is taken verbatim, so an empty body deletes the range and
  a single blank line replaces it with one empty line.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from ..errors import OutOfRangeEdit, OverlappingHunks, UnparseableResponse
from ..llm.base import CompletionResponse
from ..models import EditProposal, Hunk, SourceFile

logger = logging.getLogger(__name__)

# Patterns
_HUNK_HEADER = re.compile(
    r"^[ \t]*<{7}[ \t]*REPLACE[ \t]*\(?[ \t]*lines?[ \t]+(\d+)"
    r"(?:[ \t]*-[ \t]*(\d+))?[ \t]*\)?[ \t]*$",
    re.MULTILINE | re.IGNORECASE,
)
_HUNK_END = re.compile(r"^[ \t]*>{7}[ \t]*END\b[^\n]*$", re.MULTILINE | re.IGNORECASE)
_FENCE_LINE = re.compile(r"^[ \t]*(`{3,}|~{3,})(.*)$")
# Line-number gutter echoed back from the prompt ("  12 | code")
_GUTTER = re.compile(r"^[ \t]*\d+ \| ?")


def _is_bare_fence(line: str) -> bool:
    match = _FENCE_LINE.match(line)
    return bool(match) and not match.group(2).strip()


def _fence_open_at(text: str, offset: int) -> bool:
    """True if *offset* lies inside a fenced block opened earlier in *text*."""
    is_open = False
    for line in text[:offset].split("\n"):
        if not _FENCE_LINE.match(line):
            continue
        if not is_open:
            is_open = True
        elif _is_bare_fence(line):
            is_open = False
    return is_open


def _fenced_blocks(text: str):
    """Yield ``(start, end, body)`` for every closed top-level fenced block.

    Inside a block, a fence line carrying an info string (```` ```python ````)
    opens a nested block, and only a bare fence at nesting depth zero that
    is at least as long as the opener closes the outer one.  A file that
    itself contains fenced code is therefore not cut at its first inner
    closing fence.
    """
    opener: str | None = None
    block_start = body_start = 0
    depth = 0
    pos = 0
    for line in text.split("\n"):
        line_start, pos = pos, pos + len(line) + 1
        match = _FENCE_LINE.match(line)
        if not match:
            continue
        fence, info = match.group(1), match.group(2).strip()
        if opener is None:
            opener = fence
            block_start, body_start = line_start, min(pos, len(text))
            depth = 0
        elif fence[0] != opener[0]:
            continue
        elif info:
            depth += 1
        elif depth:
            depth -= 1
        elif len(fence) >= len(opener):
            yield block_start, line_start + len(line), text[body_start:line_start]
            opener = None


def _strip_gutter(lines: list[str]) -> list[str]:
    """Drop echoed line numbers, but only if every non-blank line has one."""
    non_blank = [l for l in lines if l.strip()]
    if not non_blank or not all(_GUTTER.match(l) for l in non_blank):
        return lines
    return [_GUTTER.sub("", l, count=1) for l in lines]


@dataclass(frozen=True)
class _RawHunk:
    start_line: int
    end_line: int
    body: str
    span: tuple[int, int]       # character span in the response, markers included


class ResponseParser:
    """Extract a structured edit from an LLM completion."""

    def parse(self, response: CompletionResponse, original: SourceFile) -> EditProposal:
        """Parse *response* against the *original* snapshot.

        Raises
        ------
        UnparseableResponse
            No full-file block and no hunk block was found.
        OutOfRangeEdit
            A hunk addresses lines the original does not have.
        OverlappingHunks
            Two hunks address the same original line.
        """
        if not response.success or not response.raw_text.strip():
            raise UnparseableResponse("model returned an empty response")

        text = response.raw_text.replace("\r\n", "\n")
        raw_hunks = self._find_hunks(text)

        full_content = self._find_full_file(text, [h.span for h in raw_hunks])
        if full_content is not None:
            logger.info("[Parser] Full-file block found (%d chars)", len(full_content))
            return EditProposal.full_replace(self._normalise_full(full_content, original))

        if raw_hunks:
            hunks = [
                Hunk(h.start_line, h.end_line, self._normalise_body(h.body, original))
                for h in raw_hunks
            ]
            self._validate(hunks, original.line_count)
            logger.info("[Parser] %d hunk(s) found", len(hunks))
            return EditProposal.hunk_set(hunks)

        logger.warning("[Parser] No full-file block or hunk found in response")
        raise UnparseableResponse("model did not return an applicable edit")

    # ------------------------------------------------------------------
    # Hunks
    # ------------------------------------------------------------------

    def _find_hunks(self, text: str) -> list[_RawHunk]:
        headers = list(_HUNK_HEADER.finditer(text))
        hunks: list[_RawHunk] = []

        for i, header in enumerate(headers):
            start = int(header.group(1))
            end = int(header.group(2)) if header.group(2) else start

            body_start = header.end()
            if text.startswith("\n", body_start):
                body_start += 1
            region_end = headers[i + 1].start() if i + 1 < len(headers) else len(text)

            terminator = _HUNK_END.search(text, body_start, region_end)
            if terminator:
                body = text[body_start:terminator.start()]
                span_end = terminator.end()
            else:
                # Truncated output: the hunk runs until the next header
                logger.warning(
                    "[Parser] Hunk for lines %d-%d has no END marker", start, end)
                body = text[body_start:region_end]
                if _fence_open_at(text, header.start()):
                    body = self._drop_closing_fence(body)
                body = body.rstrip("\n")
                if body:
                    body += "\n"
                span_end = region_end

            hunks.append(_RawHunk(
                start_line=start,
                end_line=end,
                body=body,
                span=(header.start(), span_end),
            ))

        return hunks

    @staticmethod
    def _drop_closing_fence(body: str) -> str:
        """Cut an unterminated hunk body at its last bare fence line.

        Only applies when nothing but blank lines follows that fence.
        """
        lines = body.split("\n")
        for i in range(len(lines) - 1, -1, -1):
            if _is_bare_fence(lines[i]):
                if all(not l.strip() for l in lines[i + 1:]):
                    return "\n".join(lines[:i] + [""]) if i else ""
                break
        return body

    @staticmethod
    def _normalise_body(body: str, original: SourceFile) -> str:
        """Replacement text, one terminated line per body line.

        The body runs from the line after the header up to the END line,
        so it is either empty (a deletion) or ends with a newline.
        """
        if not body:
            return ""
        lines = body[:-1].split("\n") if body.endswith("\n") else body.split("\n")

        # Unwrap a fence around the whole body
        if len(lines) >= 2 and _FENCE_LINE.match(lines[0]) and _is_bare_fence(lines[-1]):
            lines = lines[1:-1]
        if not lines:
            return ""

        return "".join(line + original.newline for line in _strip_gutter(lines))

    @staticmethod
    def _validate(hunks: list[Hunk], line_count: int) -> None:
        """Bounds and overlap checks. Never clamps."""
        limit = line_count + 1
        for hunk in hunks:
            if hunk.start_line < 1:
                raise OutOfRangeEdit(hunk.start_line, line_count)
            if hunk.start_line > limit:
                raise OutOfRangeEdit(hunk.start_line, line_count)
            if hunk.end_line > limit:
                raise OutOfRangeEdit(hunk.end_line, line_count)
            if hunk.start_line > hunk.end_line:
                raise OutOfRangeEdit(hunk.start_line, line_count)

        ordered = sorted(hunks, key=lambda h: (h.start_line, h.end_line))
        for prev, cur in zip(ordered, ordered[1:]):
            if cur.start_line <= prev.end_line:
                raise OverlappingHunks(
                    (prev.start_line, prev.end_line), (cur.start_line, cur.end_line))

    # ------------------------------------------------------------------
    # Full-file blocks
    # ------------------------------------------------------------------

    @staticmethod
    def _find_full_file(text: str, hunk_spans: list[tuple[int, int]]) -> str | None:
        """Longest non-blank fenced block outside every hunk (first wins ties)."""
        best: str | None = None
        for start, end, body in _fenced_blocks(text):
            if any(start < e and end > s for s, e in hunk_spans):
                continue
            if not body.strip():
                continue
            if best is None or len(body) > len(best):
                best = body
        return best

    @staticmethod
    def _normalise_full(body: str, original: SourceFile) -> str:
        """Match the original's newline style and trailing newline."""
        content = "\n".join(_strip_gutter(body.rstrip("\n").split("\n")))
        if original.ends_with_newline:
            content += "\n"
        if original.newline == "\r\n":
            content = content.replace("\n", "\r\n")
        return content

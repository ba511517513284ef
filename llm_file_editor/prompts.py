"""Prompt text sent to the model."""

from .models import SourceFile

SYSTEM_PROMPT = """\
You are an assistant helping a developer modify a single source file.
Follow the instruction exactly and answer with the edit only, in ONE of
these two formats:

1. The complete new file inside a single fenced code block:

```
<entire new file content>
```

2. One or more replacement hunks addressing original line numbers
   (inclusive, 1-indexed, as numbered in the file shown to you):

<<<<<<< REPLACE lines 12-14
<new text for lines 12 to 14>
>>>>>>> END

Use "line N" for a single line, an empty body to delete lines, and line
<last line + 1> to append. Every line between the header and END is used
exactly as written, blank lines included. Hunks must not overlap. Do not add
explanations outside the code block or hunks."""


def number_lines(source: SourceFile) -> str:
    """File content with right-aligned 1-based line numbers."""
    lines = [l.rstrip("\r\n") for l in source.lines]
    width = len(str(len(lines) + 1))
    return "\n".join(f"{i:>{width}} | {line}" for i, line in enumerate(lines, start=1))


def build_user_prompt(instruction: str, source: SourceFile) -> str:
    return (
        f"Instruction: {instruction.strip()}\n\n"
        f"File: {source.path} ({source.line_count} lines)"
    )


def build_file_context(source: SourceFile) -> str:
    return f"```\n{number_lines(source)}\n```"

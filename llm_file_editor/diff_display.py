"""
Diff display — render a :class:`DiffView` and ask the user to approve it.

Includes a Textual-based interactive diff viewer that pauses the session
so the user can review the change and approve/reject before anything is
written to disk.
"""

from __future__ import annotations

import difflib

from .cli_display import log
from .models import DiffOp, DiffView, SourceFile

# Row kinds produced by diff_rows()
ROW_EQUAL = " "
ROW_INSERT = "+"
ROW_DELETE = "-"
ROW_SKIP = "@"


def diff_rows(view: DiffView, context: int = 3) -> list[tuple[str, str]]:
    """Flatten *view* into ``(kind, line)`` rows.

    Unchanged runs longer than ``2 * context`` lines are collapsed into a
    single ``ROW_SKIP`` row.
    """
    rows: list[tuple[str, str]] = []
    segments = view.segments
    for idx, segment in enumerate(segments):
        lines = segment.lines
        if segment.op is DiffOp.INSERT:
            rows.extend((ROW_INSERT, l) for l in lines)
            continue
        if segment.op is DiffOp.DELETE:
            rows.extend((ROW_DELETE, l) for l in lines)
            continue

        head = context if idx > 0 else 0
        tail = context if idx < len(segments) - 1 else 0
        if len(lines) <= head + tail:
            rows.extend((ROW_EQUAL, l) for l in lines)
            continue
        rows.extend((ROW_EQUAL, l) for l in lines[:head])
        rows.append((ROW_SKIP, f"... {len(lines) - head - tail} unchanged line(s) ..."))
        if tail:
            rows.extend((ROW_EQUAL, l) for l in lines[-tail:])
    return rows


def unified_diff_text(view: DiffView) -> str:
    """Classic unified diff of the view, for logs."""
    old_lines: list[str] = []
    new_lines: list[str] = []
    for segment in view.segments:
        if segment.op is not DiffOp.INSERT:
            old_lines.extend(segment.lines)
        if segment.op is not DiffOp.DELETE:
            new_lines.extend(segment.lines)
    diff = difflib.unified_diff(
        old_lines, new_lines,
        fromfile=f"a/{view.path.lstrip('/')}",
        tofile=f"b/{view.path.lstrip('/')}",
        lineterm="",
    )
    return "\n".join(diff)


def format_colored_diff(view: DiffView, context: int = 3) -> str:
    """ANSI colors: green for additions (+), red for deletions (-), cyan for skips."""
    colored: list[str] = []
    for kind, line in diff_rows(view, context):
        if kind == ROW_INSERT:
            colored.append(f"\033[32m+ {line}\033[0m")  # green
        elif kind == ROW_DELETE:
            colored.append(f"\033[31m- {line}\033[0m")  # red
        elif kind == ROW_SKIP:
            colored.append(f"\033[36m{line}\033[0m")  # cyan
        else:
            colored.append(f"  {line}")
    return "\n".join(colored)


def _format_rich_diff(view: DiffView, context: int = 3) -> str:
    """Convert diff rows to Rich markup for Textual display."""
    markup_lines: list[str] = []
    for kind, line in diff_rows(view, context):
        # Escape Rich markup characters in the line content
        escaped = line.replace("[", "\\[")
        if kind == ROW_INSERT:
            markup_lines.append(f"[green]+ {escaped}[/green]")
        elif kind == ROW_DELETE:
            markup_lines.append(f"[red]- {escaped}[/red]")
        elif kind == ROW_SKIP:
            markup_lines.append(f"[cyan]{escaped}[/cyan]")
        else:
            markup_lines.append(f"  {escaped}")
    return "\n".join(markup_lines)


# ══════════════════════════════════════════════════════════════════
#  Interactive Diff Approval
# ══════════════════════════════════════════════════════════════════

def prompt_diff_approval(view: DiffView, source: SourceFile,
                         tui: bool = True, auto: bool = False) -> bool:
    """Show the diff and wait for approval.

    Returns ``True`` if the user approves (or if running in auto mode),
    ``False`` on reject, Esc, Ctrl-C or end of input.
    """
    log.info(f"Diff for {view.path}:\n{unified_diff_text(view)}")

    if auto:
        print(format_colored_diff(view))
        log.info("[auto] Change approved without prompting")
        return True

    if tui:
        return _textual_diff_approval(view)
    return _console_diff_approval(view)


def _textual_diff_approval(view: DiffView) -> bool:
    """Launch a Textual app to display the diff and get approval."""
    from textual.app import App, ComposeResult
    from textual.binding import Binding
    from textual.containers import Horizontal, VerticalScroll
    from textual.widgets import Button, Footer, Static

    class DiffApprovalApp(App):
        """Interactive diff viewer with approve/reject."""

        CSS = """
        Screen {
            background: $surface;
        }
        #title-bar {
            dock: top;
            height: 3;
            background: #1a1a2e;
            color: #e94560;
            text-align: center;
            padding: 1;
            text-style: bold;
        }
        #diff-scroll {
            height: 1fr;
            margin: 1 2;
            border: round #444;
            padding: 1;
        }
        #action-buttons {
            dock: bottom;
            height: 3;
            align: center middle;
            padding: 0 2;
        }
        #action-buttons Button {
            margin: 0 2;
            min-width: 20;
        }
        #summary {
            dock: bottom;
            height: 1;
            text-align: center;
            color: #888;
        }
        """

        BINDINGS = [
            Binding("a", "approve", "Approve"),
            Binding("y", "approve", "Approve"),
            Binding("escape", "reject", "Reject"),
            Binding("r", "reject", "Reject"),
            Binding("n", "reject", "Reject"),
        ]

        def __init__(self, view: DiffView) -> None:
            super().__init__()
            self._view = view
            self._approved: bool = False

        def compose(self) -> ComposeResult:
            yield Static(f" ━━  Proposed changes — {self._view.path}  ━━ ", id="title-bar")
            with VerticalScroll(id="diff-scroll"):
                yield Static(_format_rich_diff(self._view))
            yield Static(
                f"  +{self._view.insertions} / -{self._view.deletions} lines  —  "
                f"Press [bold]A[/bold] to approve, [bold]R[/bold] or Esc to reject",
                id="summary",
            )
            with Horizontal(id="action-buttons"):
                yield Button("✔ Approve", id="approve-btn", variant="success")
                yield Button("✕ Reject", id="reject-btn", variant="error")
            yield Footer()

        def on_button_pressed(self, event: Button.Pressed) -> None:
            self._approved = event.button.id == "approve-btn"
            self.exit()

        def action_approve(self) -> None:
            self._approved = True
            self.exit()

        def action_reject(self) -> None:
            self._approved = False
            self.exit()

    app = DiffApprovalApp(view)
    app.run()
    return app._approved


def _console_diff_approval(view: DiffView) -> bool:
    """Console-based diff approval (``--no-tui``)."""
    print("\nProposed changes:")
    print("-" * 60)
    print(format_colored_diff(view))
    print("-" * 60)
    print(f"  +{view.insertions} / -{view.deletions} lines")
    print("  [Y]es, apply  |  [N]o, discard")

    while True:
        try:
            choice = input("  Apply these changes? ").strip().lower()
        except (EOFError, KeyboardInterrupt):
            return False
        if choice in ("y", "yes", "a", "approve"):
            return True
        elif choice in ("n", "no", "r", "reject"):
            return False
        else:
            print("  Invalid choice. Use Y or N.")

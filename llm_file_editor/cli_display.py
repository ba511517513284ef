import logging
import os
import sys
from datetime import datetime


class TokenTracker:
    """Tracker for token usage across the LLM calls of one process."""

    def __init__(self):
        self.total_prompt_tokens = 0
        self.total_completion_tokens = 0
        self.call_count = 0

    def record(self, prompt_tokens: int, completion_tokens: int):
        self.total_prompt_tokens += prompt_tokens
        self.total_completion_tokens += completion_tokens
        self.call_count += 1

    @property
    def total_tokens(self):
        return self.total_prompt_tokens + self.total_completion_tokens


token_tracker = TokenTracker()

# Package logger; handlers are attached by setup_logger() from the CLI.
log = logging.getLogger("llm_file_editor")


def setup_logger(log_dir: str) -> logging.Logger:
    """Creates a file logger. All verbose output goes here."""
    os.makedirs(log_dir, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = os.path.join(log_dir, f"llmedit_{timestamp}.log")

    log.setLevel(logging.DEBUG)

    # File handler — captures everything
    fh = logging.FileHandler(log_file, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s", datefmt="%H:%M:%S"
    ))
    log.addHandler(fh)

    return log


# ── Terminal output ──

_COLORS = {
    "red": "\033[31m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "cyan": "\033[36m",
    "bold": "\033[1m",
}
_RESET = "\033[0m"


def colorize(text: str, color: str) -> str:
    if not sys.stdout.isatty():
        return text
    return f"{_COLORS[color]}{text}{_RESET}"


def show_status(message: str, color: str | None = None):
    print(colorize(message, color) if color else message)


def show_error(message: str):
    print(colorize(f"  [ERROR] {message}", "red"), file=sys.stderr)


# ── Interactive prompts ──

def prompt_for_instruction() -> str:
    """Ask for the natural-language edit instruction."""
    while True:
        try:
            prompt = input("Enter your prompt: ").strip()
        except EOFError:
            return ""
        if prompt:
            return prompt
        print("  Prompt cannot be empty.")


def prompt_for_api_key(provider_name: str) -> str:
    return input(f"Enter your {provider_name} API key: ").strip()


def select_model(models: list[str]) -> str:
    """Numbered menu over *models*; loops until a valid choice is made."""
    print("Select a model:")
    for i, model in enumerate(models, start=1):
        print(f"  {i}. {model}")

    while True:
        choice = input("Enter the number of your choice: ").strip()
        if choice.isdigit() and 1 <= int(choice) <= len(models):
            return models[int(choice) - 1]
        print("  Invalid choice. Please try again.")

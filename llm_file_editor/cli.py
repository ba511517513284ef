"""
CLI entry point — argument parsing and main execution flow.
"""

import argparse
import sys

from .cli_display import (
    log, prompt_for_api_key, prompt_for_instruction, select_model,
    setup_logger, show_error, show_status, token_tracker,
)
from .config import Config
from .credentials import CredentialStore
from .diff_display import prompt_diff_approval
from .editing.patch_engine import PatchEngine
from .errors import EditorError, NoProviderConfigured, WriteFailed
from .llm.router import ModelSelection, ProviderRouter
from .session import EditSession, SessionOutcome, SessionState


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="llmedit",
        description="llmedit — ask an LLM to modify a file, review the diff, apply it")
    parser.add_argument("-f", "--file", required=True,
                        help="The source file to modify")
    parser.add_argument("-m", "--model", action="store_true",
                        help="Choose the model interactively")
    parser.add_argument("-o", "--openrouter", action="store_true",
                        help="Shortcut for --provider openrouter")
    parser.add_argument("--provider", default=None,
                        help="Provider to use (default: from config)")
    parser.add_argument("-p", "--prompt", default=None,
                        help="Edit instruction (prompted for when omitted)")
    parser.add_argument("--config", default=None,
                        help="Path to .llmedit.yaml config file")
    parser.add_argument("--no-backup", action="store_true",
                        help="Do not keep a backup copy next to the file")
    parser.add_argument("--no-tui", action="store_true",
                        help="Review the diff in the console instead of the TUI")
    parser.add_argument("-y", "--yes", action="store_true",
                        help="Apply the proposed change without asking")
    parser.add_argument("--log-dir", default=None,
                        help="Directory for log files (default: from config)")
    return parser


def build_router(cfg: Config, store: CredentialStore) -> ProviderRouter:
    """Router over every configured provider, tokens from the credential store."""
    providers = {
        provider_id: cfg.provider_config(provider_id, store.get(provider_id))
        for provider_id in cfg.PROVIDERS
    }
    return ProviderRouter(providers, client_options=cfg.client_options())


def _first_run_setup(store: CredentialStore, provider_id: str) -> bool:
    """Ask for and store an API key. Returns False when none was given."""
    show_status(f"No API key found for '{provider_id}'.", "yellow")
    try:
        api_key = prompt_for_api_key(provider_id)
    except (EOFError, KeyboardInterrupt):
        return False
    if not api_key:
        return False
    path = store.save(provider_id, api_key)
    show_status(f"API key saved to {path}", "green")
    return True


def _report(outcome: SessionOutcome) -> None:
    if outcome.state is SessionState.APPLIED:
        result = outcome.apply_result
        show_status(f"Changes applied successfully ({result.bytes_written} bytes written).",
                    "green")
        if result.backup_path:
            show_status(f"Backup of the original: {result.backup_path}")
    elif outcome.state is SessionState.DISCARDED:
        if outcome.diff_view is not None and not outcome.diff_view.has_changes:
            show_status("The model proposed no changes.", "yellow")
        else:
            show_status("Changes discarded.", "yellow")
    else:
        error = outcome.error
        show_error(error.describe() if error else "session failed")
        if isinstance(error, WriteFailed):
            show_error("The original file was left unchanged.")


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    # ── 0. Load config ──
    cfg = Config.load(args.config)
    setup_logger(args.log_dir or cfg.LOG_DIR)

    if args.provider:
        provider_id = args.provider
    elif args.openrouter:
        provider_id = "openrouter"
    else:
        provider_id = cfg.PROVIDER

    if provider_id not in cfg.PROVIDERS:
        show_error(f"Unknown provider '{provider_id}'. "
                   f"Known: {', '.join(sorted(cfg.PROVIDERS))}")
        return 1

    # ── 1. Credentials (first run) ──
    store = CredentialStore(cfg)
    router = build_router(cfg, store)
    try:
        router.route(provider_id)
    except NoProviderConfigured as e:
        log.info(f"[Setup] {e.describe()}")
        if store.get(provider_id):
            # Key present, so the provider entry itself is unusable
            show_error(e.describe())
            return 1
        if not _first_run_setup(store, provider_id):
            show_error(f"{provider_id} requires an API key.")
            return 1
        router = build_router(cfg, store)

    # ── 2. Model selection ──
    mode = ModelSelection.DEFAULT
    chosen_model = None
    if args.model:
        mode = ModelSelection.INTERACTIVE
        try:
            chosen_model = select_model(router.list_models(provider_id))
        except EditorError as e:
            show_error(e.describe())
            return 1
        except (EOFError, KeyboardInterrupt):
            return 130

    # ── 3. Instruction ──
    instruction = args.prompt or prompt_for_instruction()
    if not instruction.strip():
        show_error("An edit instruction is required.")
        return 1

    # ── 4. Run the session ──
    engine = PatchEngine(backup=cfg.BACKUP and not args.no_backup,
                         backup_suffix=cfg.BACKUP_SUFFIX)
    use_tui = cfg.TUI and not args.no_tui

    def review(view, source):
        return prompt_diff_approval(view, source, tui=use_tui, auto=args.yes)

    session = EditSession(
        router, provider_id, review,
        mode=mode,
        chosen_model=chosen_model,
        engine=engine,
        max_retries=cfg.MAX_RETRIES,
        retry_delay=cfg.RETRY_DELAY,
    )
    show_status(f"Sending request to {provider_id}...", "cyan")
    outcome = session.run(args.file, instruction)
    _report(outcome)

    log.info(f"Session ended in {outcome.state.value} after {outcome.attempts} attempt(s); "
             f"tokens: prompt={token_tracker.total_prompt_tokens} "
             f"completion={token_tracker.total_completion_tokens}")
    return outcome.exit_code


if __name__ == "__main__":
    sys.exit(main())

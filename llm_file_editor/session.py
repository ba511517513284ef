"""
Edit session — one end-to-end invocation: read file, obtain one
completion, review the diff, apply or discard.

State machine::

    IDLE -> PROMPT_BUILT -> AWAITING_COMPLETION -> PROPOSAL_READY
         -> APPLIED | DISCARDED | FAILED

Terminal states are final; a session object runs once.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .cli_display import log
from .editing.patch_engine import PatchEngine
from .editing.response_parser import ResponseParser
from .errors import (
    EditorError, ProviderUnavailable, SessionCancelled, TransportError, WriteFailed,
)
from .llm.base import CompletionResponse
from .llm.router import ActiveProvider, ModelSelection, ProviderRouter
from .models import ApplyResult, DiffView, EditProposal, SourceFile
from .prompts import SYSTEM_PROMPT, build_file_context, build_user_prompt

# (diff_view, source) -> True to apply
ReviewFn = Callable[[DiffView, SourceFile], bool]


class SessionState(str, Enum):
    IDLE = "Idle"
    PROMPT_BUILT = "PromptBuilt"
    AWAITING_COMPLETION = "AwaitingCompletion"
    PROPOSAL_READY = "ProposalReady"
    APPLIED = "Applied"
    DISCARDED = "Discarded"
    FAILED = "Failed"


TERMINAL_STATES = frozenset({SessionState.APPLIED, SessionState.DISCARDED, SessionState.FAILED})

_TRANSITIONS = {
    SessionState.IDLE: {SessionState.PROMPT_BUILT, SessionState.FAILED},
    SessionState.PROMPT_BUILT: {SessionState.AWAITING_COMPLETION, SessionState.FAILED},
    SessionState.AWAITING_COMPLETION: {SessionState.PROPOSAL_READY, SessionState.FAILED},
    SessionState.PROPOSAL_READY: {SessionState.APPLIED, SessionState.DISCARDED,
                                  SessionState.FAILED},
}


@dataclass
class SessionOutcome:
    """What the CLI needs to report a finished session."""
    state: SessionState
    error: Optional[EditorError] = None
    source: Optional[SourceFile] = None
    response: Optional[CompletionResponse] = None
    proposal: Optional[EditProposal] = None
    diff_view: Optional[DiffView] = None
    apply_result: Optional[ApplyResult] = None
    attempts: int = 0

    @property
    def exit_code(self) -> int:
        if self.state in (SessionState.APPLIED, SessionState.DISCARDED):
            return 0
        if isinstance(self.error, SessionCancelled):
            return 130
        return 1


class EditSession:
    """Sequences router, client, parser and patch engine for one file."""

    def __init__(
        self,
        router: ProviderRouter,
        provider_id: str,
        review: ReviewFn,
        mode: ModelSelection = ModelSelection.DEFAULT,
        chosen_model: str | None = None,
        parser: ResponseParser | None = None,
        engine: PatchEngine | None = None,
        max_retries: int = 3,
        retry_delay: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._router = router
        self._provider_id = provider_id
        self._review = review
        self._mode = mode
        self._chosen_model = chosen_model
        self._parser = parser or ResponseParser()
        self._engine = engine or PatchEngine()
        self._max_retries = max(1, max_retries)
        self._retry_delay = retry_delay
        self._sleep = sleep
        self._outcome = SessionOutcome(state=SessionState.IDLE)

    @property
    def state(self) -> SessionState:
        return self._outcome.state

    def _transition(self, new_state: SessionState) -> None:
        current = self._outcome.state
        if new_state not in _TRANSITIONS.get(current, ()):
            raise RuntimeError(f"invalid session transition {current.value} -> {new_state.value}")
        log.debug(f"[Session] {current.value} -> {new_state.value}")
        self._outcome.state = new_state

    def _fail(self, error: EditorError) -> SessionOutcome:
        log.error(f"[Session] Failed: {error.describe()}")
        self._outcome.error = error
        self._transition(SessionState.FAILED)
        return self._outcome

    # ── Public entry point ──

    def run(self, path: str, instruction: str) -> SessionOutcome:
        """Run the session to a terminal state and return the outcome."""
        if self._outcome.state is not SessionState.IDLE:
            raise RuntimeError("an EditSession runs only once")
        outcome = self._outcome

        # Idle -> PromptBuilt
        try:
            source = SourceFile.read(path)
        except EditorError as e:
            return self._fail(e)
        outcome.source = source
        user_prompt = build_user_prompt(instruction, source)
        file_context = build_file_context(source)
        self._transition(SessionState.PROMPT_BUILT)

        # PromptBuilt -> AwaitingCompletion
        try:
            active = self._router.route(self._provider_id, self._mode, self._chosen_model)
        except EditorError as e:
            return self._fail(e)
        self._transition(SessionState.AWAITING_COMPLETION)

        # AwaitingCompletion -> ProposalReady
        try:
            response = self._complete_with_retry(active, user_prompt, file_context)
        except KeyboardInterrupt:
            return self._fail(SessionCancelled("interrupted while waiting for the provider"))
        except EditorError as e:
            return self._fail(e)
        outcome.response = response

        try:
            proposal = self._parser.parse(response, source)
        except EditorError as e:
            return self._fail(e)
        outcome.proposal = proposal
        outcome.diff_view = self._engine.diff(source, proposal)
        self._transition(SessionState.PROPOSAL_READY)

        # ProposalReady -> Applied | Discarded
        if not outcome.diff_view.has_changes:
            log.info("[Session] Proposal is identical to the original, nothing to apply")
            self._transition(SessionState.DISCARDED)
            return outcome

        try:
            approved = bool(self._review(outcome.diff_view, source))
        except (KeyboardInterrupt, EOFError):
            approved = False
        if not approved:
            log.info("[Session] Proposal rejected by user")
            self._transition(SessionState.DISCARDED)
            return outcome

        try:
            outcome.apply_result = self._engine.apply(source, proposal)
        except WriteFailed as e:
            outcome.apply_result = e.result
            return self._fail(e)
        self._transition(SessionState.APPLIED)
        return outcome

    # ── Retry ──

    def _complete_with_retry(self, active: ActiveProvider, user_prompt: str,
                             file_context: str) -> CompletionResponse:
        """Call the provider, retrying only :class:`TransportError`.

        Jittered exponential backoff; raises :class:`ProviderUnavailable`
        once every attempt has failed.
        """
        last_error: TransportError | None = None

        for attempt in range(1, self._max_retries + 1):
            self._outcome.attempts = attempt
            try:
                return active.complete(SYSTEM_PROMPT, user_prompt, file_context)
            except TransportError as e:
                last_error = e
                log.warning(f"[Session] Transport error on attempt "
                            f"{attempt}/{self._max_retries}: {e}")
                if attempt < self._max_retries:
                    wait = self._retry_delay * (2 ** (attempt - 1))
                    jitter = wait * 0.1 * random.random()
                    self._sleep(wait + jitter)

        raise ProviderUnavailable(self._max_retries, last_error)

"""
Tests for EditSession — the read / complete / parse / review / apply flow.

The router is replaced by a scripted fake; no network access.
"""

from unittest.mock import MagicMock

import pytest

from llm_file_editor.editing.patch_engine import PatchEngine
from llm_file_editor.editing.response_parser import ResponseParser
from llm_file_editor.errors import (
    FileNotFound, NoProviderConfigured, NotUTF8, OutOfRangeEdit, ProviderRejected,
    ProviderUnavailable, SessionCancelled, TransportError, UnparseableResponse, WriteFailed,
)
from llm_file_editor.llm.base import CompletionResponse
from llm_file_editor.session import EditSession, SessionState

HUNK_REPLY = "<<<<<<< REPLACE line 2\nB\n>>>>>>> END\n"


class FakeProvider:
    """Plays back a script of replies / exceptions, one per call."""

    def __init__(self, script):
        self.script = list(script)
        self.calls = 0
        self.provider_id = "fake"

    def complete(self, system_prompt, user_prompt, file_content):
        self.calls += 1
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return CompletionResponse(raw_text=item, provider_id="fake", model_id="m")


class FakeRouter:
    def __init__(self, provider=None, error=None):
        self.provider = provider
        self.error = error
        self.route_calls = 0

    def route(self, provider_id, mode, chosen_model=None):
        self.route_calls += 1
        if self.error:
            raise self.error
        return self.provider


@pytest.fixture
def abc_file(tmp_path):
    path = tmp_path / "abc.txt"
    path.write_bytes(b"a\nb\nc\n")
    return path


def _session(script, review=None, sleep=None, **kwargs):
    provider = FakeProvider(script)
    router = FakeRouter(provider)
    session = EditSession(
        router, "fake",
        review=review or (lambda view, source: True),
        sleep=sleep or MagicMock(),
        **kwargs,
    )
    return session, provider


class TestHappyPath:
    def test_applied(self, abc_file):
        session, provider = _session([HUNK_REPLY])
        outcome = session.run(str(abc_file), "capitalise b")

        assert outcome.state is SessionState.APPLIED
        assert outcome.exit_code == 0
        assert abc_file.read_bytes() == b"a\nB\nc\n"
        assert outcome.apply_result.applied is True
        assert outcome.apply_result.backup_path.endswith("abc.txt.bak")
        assert provider.calls == 1

    def test_review_sees_diff_before_any_write(self, abc_file):
        seen = {}

        def review(view, source):
            seen["disk"] = abc_file.read_bytes()
            seen["has_changes"] = view.has_changes
            return True

        session, _ = _session([HUNK_REPLY], review=review)
        session.run(str(abc_file), "capitalise b")
        assert seen == {"disk": b"a\nb\nc\n", "has_changes": True}

    def test_session_runs_once(self, abc_file):
        session, _ = _session([HUNK_REPLY])
        session.run(str(abc_file), "x")
        with pytest.raises(RuntimeError):
            session.run(str(abc_file), "x")


class TestRetry:
    def test_two_transport_failures_then_success(self, abc_file):
        sleep = MagicMock()
        parser = MagicMock(wraps=ResponseParser())
        session, provider = _session(
            [TransportError("reset"), TransportError("timeout"), HUNK_REPLY],
            sleep=sleep, parser=parser, max_retries=3, retry_delay=1.0,
        )
        outcome = session.run(str(abc_file), "capitalise b")

        assert outcome.state is SessionState.APPLIED
        assert provider.calls == 3
        assert outcome.attempts == 3
        # retries are invisible downstream: exactly one response parsed
        assert parser.parse.call_count == 1
        waits = [c.args[0] for c in sleep.call_args_list]
        assert len(waits) == 2
        assert 1.0 <= waits[0] <= 1.1
        assert 2.0 <= waits[1] <= 2.2

    def test_exhausted_retries_are_provider_unavailable(self, abc_file):
        sleep = MagicMock()
        session, provider = _session([TransportError("down")] * 3, sleep=sleep, max_retries=3)
        outcome = session.run(str(abc_file), "x")

        assert outcome.state is SessionState.FAILED
        assert isinstance(outcome.error, ProviderUnavailable)
        assert outcome.exit_code == 1
        assert provider.calls == 3
        assert sleep.call_count == 2
        assert abc_file.read_bytes() == b"a\nb\nc\n"

    def test_provider_rejected_is_not_retried(self, abc_file):
        session, provider = _session([ProviderRejected(401, "bad key"), HUNK_REPLY])
        outcome = session.run(str(abc_file), "x")

        assert outcome.state is SessionState.FAILED
        assert isinstance(outcome.error, ProviderRejected)
        assert provider.calls == 1

    def test_interrupt_while_waiting_leaves_file_untouched(self, abc_file):
        session, _ = _session([KeyboardInterrupt()])
        outcome = session.run(str(abc_file), "x")

        assert outcome.state is SessionState.FAILED
        assert isinstance(outcome.error, SessionCancelled)
        assert outcome.exit_code == 130
        assert abc_file.read_bytes() == b"a\nb\nc\n"


class TestDiscard:
    def test_rejection_leaves_bytes_identical(self, abc_file, tmp_path):
        before = abc_file.read_bytes()
        session, _ = _session([HUNK_REPLY], review=lambda view, source: False)
        outcome = session.run(str(abc_file), "x")

        assert outcome.state is SessionState.DISCARDED
        assert outcome.exit_code == 0
        assert outcome.apply_result is None
        assert abc_file.read_bytes() == before
        assert sorted(p.name for p in tmp_path.iterdir()) == ["abc.txt"]

    def test_interrupt_during_review_is_discard(self, abc_file):
        def review(view, source):
            raise KeyboardInterrupt

        session, _ = _session([HUNK_REPLY], review=review)
        outcome = session.run(str(abc_file), "x")
        assert outcome.state is SessionState.DISCARDED
        assert abc_file.read_bytes() == b"a\nb\nc\n"

    def test_identical_proposal_skips_review(self, abc_file):
        review = MagicMock(return_value=True)
        session, _ = _session(["```\na\nb\nc\n```"], review=review)
        outcome = session.run(str(abc_file), "x")

        assert outcome.state is SessionState.DISCARDED
        review.assert_not_called()


class TestFailures:
    def test_unparseable_reply(self, abc_file):
        session, _ = _session(["Sure! I would change b to B."])
        outcome = session.run(str(abc_file), "x")

        assert outcome.state is SessionState.FAILED
        assert isinstance(outcome.error, UnparseableResponse)
        assert outcome.error.kind == "UnparseableResponse"
        assert abc_file.read_bytes() == b"a\nb\nc\n"

    def test_out_of_range_reply(self, abc_file):
        session, _ = _session(["<<<<<<< REPLACE line 40\nX\n>>>>>>> END\n"])
        outcome = session.run(str(abc_file), "x")
        assert isinstance(outcome.error, OutOfRangeEdit)
        assert outcome.error.line == 40

    def test_missing_file_never_routes(self, tmp_path):
        router = FakeRouter(FakeProvider([HUNK_REPLY]))
        session = EditSession(router, "fake", review=lambda v, s: True)
        outcome = session.run(str(tmp_path / "nope.txt"), "x")

        assert outcome.state is SessionState.FAILED
        assert isinstance(outcome.error, FileNotFound)
        assert router.route_calls == 0

    def test_binary_file_is_not_utf8(self, tmp_path):
        path = tmp_path / "blob.bin"
        path.write_bytes(b"\xff\xfe\x00\x01")
        session, provider = _session([HUNK_REPLY])
        outcome = session.run(str(path), "x")
        assert isinstance(outcome.error, NotUTF8)
        assert provider.calls == 0

    def test_no_provider_configured(self, abc_file):
        router = FakeRouter(error=NoProviderConfigured("hyperbolic"))
        session = EditSession(router, "hyperbolic", review=lambda v, s: True)
        outcome = session.run(str(abc_file), "x")
        assert isinstance(outcome.error, NoProviderConfigured)
        assert outcome.state is SessionState.FAILED

    def test_write_failure_is_reported(self, abc_file):
        engine = PatchEngine()
        engine.apply = MagicMock(side_effect=WriteFailed(str(abc_file), OSError("disk full")))
        session, _ = _session([HUNK_REPLY], engine=engine)
        outcome = session.run(str(abc_file), "x")

        assert outcome.state is SessionState.FAILED
        assert isinstance(outcome.error, WriteFailed)
        assert abc_file.read_bytes() == b"a\nb\nc\n"

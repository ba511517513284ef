"""Tests for the PatchEngine."""

import os
import stat

import pytest

from llm_file_editor.editing.patch_engine import PatchEngine
from llm_file_editor.errors import WriteFailed
from llm_file_editor.models import (
    DiffOp, EditProposal, Hunk, ProposalKind, SourceFile,
)


def _write(tmp_path, content: bytes, name="sample.py") -> SourceFile:
    path = tmp_path / name
    path.write_bytes(content)
    return SourceFile.read(str(path))


SAMPLE_FILE = b"""\
import os
import sys

def helper():
    return 42
"""


class TestRender:
    def test_single_line_scenario(self):
        source = SourceFile(path="/work/abc.txt", original_content=b"a\nb\nc\n")
        proposal = EditProposal.hunk_set([Hunk(2, 2, "B")])
        assert PatchEngine().render(source, proposal) == "a\nB\nc\n"

    def test_hunk_order_does_not_matter(self):
        source = SourceFile(path="/work/f.txt", original_content=b"1\n2\n3\n4\n5\n")
        unsorted = EditProposal(
            kind=ProposalKind.HUNK_SET,
            payload=(Hunk(4, 5, "four-five"), Hunk(1, 1, "one")),
        )
        sorted_ = EditProposal.hunk_set([Hunk(1, 1, "one"), Hunk(4, 5, "four-five")])
        engine = PatchEngine()
        assert engine.render(source, unsorted) == "one\n2\n3\nfour-five\n"
        assert engine.render(source, unsorted) == engine.render(source, sorted_)

    def test_replacement_can_grow_and_shrink(self):
        source = SourceFile(path="/work/f.txt", original_content=b"1\n2\n3\n4\n")
        proposal = EditProposal.hunk_set([
            Hunk(1, 1, "1a\n1b\n1c"),
            Hunk(3, 4, "34"),
        ])
        assert PatchEngine().render(source, proposal) == "1a\n1b\n1c\n2\n34\n"

    def test_deletion(self):
        source = SourceFile(path="/work/f.txt", original_content=SAMPLE_FILE)
        proposal = EditProposal.hunk_set([Hunk(2, 2, "")])
        rendered = PatchEngine().render(source, proposal)
        assert "import sys" not in rendered
        assert rendered.startswith("import os\n\ndef helper():")

    def test_append_after_last_line(self):
        source = SourceFile(path="/work/f.txt", original_content=b"a\nb\n")
        proposal = EditProposal.hunk_set([Hunk(3, 3, "c")])
        assert PatchEngine().render(source, proposal) == "a\nb\nc\n"

    def test_missing_trailing_newline_is_preserved(self):
        source = SourceFile(path="/work/f.txt", original_content=b"a\nb")
        engine = PatchEngine()
        assert engine.render(source, EditProposal.hunk_set([Hunk(2, 2, "B")])) == "a\nB"
        assert engine.render(source, EditProposal.hunk_set([Hunk(3, 3, "c")])) == "a\nb\nc"

    def test_crlf_line_endings(self):
        source = SourceFile(path="/work/f.txt", original_content=b"a\r\nb\r\nc\r\n")
        proposal = EditProposal.hunk_set([Hunk(2, 2, "B")])
        assert PatchEngine().render(source, proposal) == "a\r\nB\r\nc\r\n"

    def test_full_replace_is_verbatim(self):
        source = SourceFile(path="/work/f.txt", original_content=b"old\n")
        proposal = EditProposal.full_replace("brand\nnew")
        assert PatchEngine().render(source, proposal) == "brand\nnew"


class TestDiff:
    def test_segments_for_single_line_change(self):
        source = SourceFile(path="/work/abc.txt", original_content=b"a\nb\nc\n")
        view = PatchEngine().diff(source, EditProposal.hunk_set([Hunk(2, 2, "B")]))
        assert [(s.op, s.text) for s in view.segments] == [
            (DiffOp.EQUAL, "a\n"),
            (DiffOp.DELETE, "b\n"),
            (DiffOp.INSERT, "B\n"),
            (DiffOp.EQUAL, "c\n"),
        ]
        assert view.has_changes
        assert view.insertions == 1
        assert view.deletions == 1

    def test_unchanged_content_has_no_changes(self):
        source = SourceFile(path="/work/abc.txt", original_content=b"a\nb\n")
        view = PatchEngine().diff(source, EditProposal.full_replace("a\nb\n"))
        assert not view.has_changes
        assert [s.op for s in view.segments] == [DiffOp.EQUAL]

    def test_diff_never_touches_disk(self, tmp_path):
        source = SourceFile(path=str(tmp_path / "missing.txt"), original_content=b"x\n")
        PatchEngine().diff(source, EditProposal.full_replace("y\n"))
        assert list(tmp_path.iterdir()) == []


class TestApply:
    def test_full_replace_writes_payload_and_backup(self, tmp_path):
        source = _write(tmp_path, SAMPLE_FILE)
        payload = "print('hello')\n"

        result = PatchEngine().apply(source, EditProposal.full_replace(payload))

        assert result.applied is True
        assert result.bytes_written == len(payload.encode("utf-8"))
        with open(source.path, "rb") as f:
            assert f.read() == payload.encode("utf-8")
        assert result.backup_path == source.path + ".bak"
        with open(result.backup_path, "rb") as f:
            assert f.read() == SAMPLE_FILE

    def test_hunk_scenario_on_disk(self, tmp_path):
        source = _write(tmp_path, b"a\nb\nc\n", name="abc.txt")
        PatchEngine().apply(source, EditProposal.hunk_set([Hunk(2, 2, "B")]))
        with open(source.path, "rb") as f:
            assert f.read().decode("utf-8").splitlines() == ["a", "B", "c"]

    def test_hunks_apply_against_snapshot_not_disk(self, tmp_path):
        source = _write(tmp_path, b"a\nb\nc\n", name="abc.txt")
        # File changes after the snapshot; apply still works from the snapshot
        (tmp_path / "abc.txt").write_bytes(b"zzz\n")
        PatchEngine().apply(source, EditProposal.hunk_set([Hunk(2, 2, "B")]))
        assert (tmp_path / "abc.txt").read_bytes() == b"a\nB\nc\n"

    def test_symlinked_target_is_followed(self, tmp_path):
        real = tmp_path / "real.txt"
        real.write_bytes(b"a\nb\nc\n")
        link = tmp_path / "link.txt"
        link.symlink_to(real)
        source = SourceFile.read(str(link))

        PatchEngine().apply(source, EditProposal.hunk_set([Hunk(2, 2, "B")]))

        assert link.is_symlink()
        assert real.read_bytes() == b"a\nB\nc\n"
        assert (tmp_path / "link.txt.bak").read_bytes() == b"a\nb\nc\n"

    def test_backup_disabled(self, tmp_path):
        source = _write(tmp_path, b"a\n")
        result = PatchEngine(backup=False).apply(source, EditProposal.full_replace("b\n"))
        assert result.backup_path is None
        assert sorted(p.name for p in tmp_path.iterdir()) == ["sample.py"]

    def test_custom_backup_suffix(self, tmp_path):
        source = _write(tmp_path, b"a\n")
        result = PatchEngine(backup_suffix=".orig").apply(
            source, EditProposal.full_replace("b\n"))
        assert result.backup_path.endswith("sample.py.orig")

    def test_file_mode_is_preserved(self, tmp_path):
        source = _write(tmp_path, b"#!/bin/sh\necho hi\n", name="run.sh")
        os.chmod(source.path, 0o755)
        PatchEngine().apply(source, EditProposal.full_replace("#!/bin/sh\necho bye\n"))
        assert stat.S_IMODE(os.stat(source.path).st_mode) == 0o755

    def test_failed_rename_leaves_original_untouched(self, tmp_path, monkeypatch):
        source = _write(tmp_path, SAMPLE_FILE)
        real_replace = os.replace

        def failing_replace(src, dst):
            if os.path.realpath(dst) == os.path.realpath(source.path):
                raise OSError("simulated failure before rename")
            return real_replace(src, dst)

        monkeypatch.setattr(os, "replace", failing_replace)

        with pytest.raises(WriteFailed) as exc_info:
            PatchEngine().apply(source, EditProposal.full_replace("broken\n"))

        assert exc_info.value.result.applied is False
        assert exc_info.value.result.bytes_written == 0
        with open(source.path, "rb") as f:
            assert f.read() == SAMPLE_FILE
        # temp file cleaned up, only the target and its backup remain
        assert sorted(p.name for p in tmp_path.iterdir()) == ["sample.py", "sample.py.bak"]

    def test_failed_temp_write_leaves_original_untouched(self, tmp_path, monkeypatch):
        source = _write(tmp_path, SAMPLE_FILE)

        def failing_fsync(fd):
            raise OSError("disk full")

        monkeypatch.setattr(os, "fsync", failing_fsync)

        with pytest.raises(WriteFailed) as exc_info:
            PatchEngine().apply(source, EditProposal.full_replace("new\n"))

        assert exc_info.value.result.backup_path is None
        assert (tmp_path / "sample.py").read_bytes() == SAMPLE_FILE
        assert sorted(p.name for p in tmp_path.iterdir()) == ["sample.py"]

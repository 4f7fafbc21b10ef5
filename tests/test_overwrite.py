"""Tests for the overwrite policy."""

import io
import logging

import pytest

from ndconvert.enums import OverwriteDecision
from ndconvert.errors import DatasetIOError, OverwriteAborted
from ndconvert.overwrite import OverwriteGuard


def _exists(_path):
    return True


def _missing(_path):
    return False


class CountingStream(io.StringIO):
    """StringIO recording how many lines were read."""

    def __init__(self, value):
        super().__init__(value)
        self.reads = 0

    def readline(self, *args):
        self.reads += 1
        return super().readline(*args)


class TestEvaluate:
    """Tests for flag-only decisions."""

    def test_missing_destination_proceeds(self):
        """Test a missing destination proceeds whatever the flags."""
        guard = OverwriteGuard(no_overwrite=True, exists=_missing)
        assert guard.evaluate("out.tif") is OverwriteDecision.PROCEED

    def test_no_overwrite_aborts(self):
        """Test an existing destination with no-overwrite aborts."""
        guard = OverwriteGuard(no_overwrite=True, exists=_exists)
        assert guard.evaluate("out.tif") is OverwriteDecision.ABORT

    def test_no_overwrite_wins_over_overwrite(self):
        """Test no-overwrite takes precedence."""
        guard = OverwriteGuard(overwrite=True, no_overwrite=True, exists=_exists)
        assert guard.evaluate("out.tif") is OverwriteDecision.ABORT

    def test_overwrite_proceeds(self):
        """Test an existing destination with overwrite proceeds."""
        guard = OverwriteGuard(overwrite=True, exists=_exists)
        assert guard.evaluate("out.tif") is OverwriteDecision.PROCEED

    def test_no_flags_needs_prompt(self):
        """Test an existing destination without flags needs a prompt."""
        guard = OverwriteGuard(exists=_exists)
        assert guard.evaluate("out.tif") is OverwriteDecision.NEEDS_PROMPT

    def test_default_probe_uses_file_system(self, tmp_path):
        """Test the default probe looks at the file system."""
        target = tmp_path / "out.tif"
        guard = OverwriteGuard(no_overwrite=True)
        assert guard.evaluate(target) is OverwriteDecision.PROCEED
        target.write_bytes(b"x")
        assert guard.evaluate(target) is OverwriteDecision.ABORT

    def test_probe_failure(self):
        """Test a failing existence probe becomes a DatasetIOError."""

        def broken(_path):
            raise PermissionError("denied")

        guard = OverwriteGuard(exists=broken)
        with pytest.raises(DatasetIOError, match="Cannot query destination"):
            guard.evaluate("out.tif")


class TestPrompt:
    """Tests for prompting."""

    def test_answer_no_aborts(self):
        """Test answering n declines the overwrite."""
        guard = OverwriteGuard(exists=_exists, input_stream=io.StringIO("n\n"))
        assert guard.check("out.tif") is OverwriteDecision.ABORT

    @pytest.mark.parametrize("answer", ["\n", "", "y\n", "yes\n", "whatever\n"])
    def test_other_answers_proceed(self, answer):
        """Test empty input, EOF and anything not starting with n proceed."""
        guard = OverwriteGuard(exists=_exists, input_stream=io.StringIO(answer))
        assert guard.check("out.tif") is OverwriteDecision.PROCEED

    def test_uppercase_no(self):
        """Test answers are case insensitive."""
        guard = OverwriteGuard(exists=_exists, input_stream=io.StringIO("No\n"))
        assert guard.check("out.tif") is OverwriteDecision.ABORT

    def test_prompt_messages(self, caplog):
        """Test the prompt is logged as two warnings."""
        guard = OverwriteGuard(exists=_exists, input_stream=io.StringIO("y\n"))
        with caplog.at_level(logging.WARNING, logger="ndconvert"):
            guard.check("out.tif")
        messages = [record.getMessage() for record in caplog.records]
        assert messages == [
            "destination out.tif exists.",
            "Do you want to overwrite it? ([y]/n)",
        ]

    def test_decision_cached_per_path(self):
        """Test the user is asked once per path."""
        stream = CountingStream("n\ny\n")
        guard = OverwriteGuard(exists=_exists, input_stream=stream)
        assert guard.check("a.tif") is OverwriteDecision.ABORT
        assert guard.check("a.tif") is OverwriteDecision.ABORT
        assert stream.reads == 1
        assert guard.check("b.tif") is OverwriteDecision.PROCEED
        assert stream.reads == 2

    def test_flags_never_prompt(self):
        """Test flag decisions don't read input."""
        stream = CountingStream("n\n")
        guard = OverwriteGuard(overwrite=True, exists=_exists, input_stream=stream)
        assert guard.check("out.tif") is OverwriteDecision.PROCEED
        assert stream.reads == 0

    def test_stdin_looked_up_at_call_time(self, monkeypatch):
        """Test sys.stdin is read when no stream was given."""
        guard = OverwriteGuard(exists=_exists)
        monkeypatch.setattr("sys.stdin", io.StringIO("n\n"))
        assert guard.check("out.tif") is OverwriteDecision.ABORT


class TestEnsure:
    """Tests for ensure."""

    def test_ensure_raises_on_abort(self):
        """Test a declined overwrite raises with the destination named."""
        guard = OverwriteGuard(no_overwrite=True, exists=_exists)
        with pytest.raises(OverwriteAborted, match="Output file out.tif exists"):
            guard.ensure("out.tif")

    def test_ensure_passes_on_proceed(self):
        """Test ensure returns quietly when writing is allowed."""
        OverwriteGuard(exists=_missing).ensure("out.tif")

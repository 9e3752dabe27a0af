"""Tests for the output formatting system.

Covers:
- OutputFormat resolution (auto -> rich/plain based on TTY)
- NO_COLOR / TERM=dumb color disabling
- stdout vs stderr discipline
- Quiet mode suppression rules
- print_document and print_table in every format
- Global instance management and the forwarding helpers
"""

from __future__ import annotations

import json

import pytest

from specroute import output as output_module
from specroute.output import (
    OutputFormat,
    OutputManager,
    _color_disabled_by_env,
    get_output,
    reset_output,
    set_output,
)


# ------------------------------------------------------------------ #
# Fixtures
# ------------------------------------------------------------------ #


@pytest.fixture()
def non_tty(monkeypatch):
    monkeypatch.setattr("specroute.output._is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    monkeypatch.setattr("specroute.output._is_tty", lambda: True)
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.delenv("TERM", raising=False)


# ------------------------------------------------------------------ #
# Format resolution
# ------------------------------------------------------------------ #


class TestOutputFormatResolution:
    def test_auto_is_plain_when_piped(self, non_tty):
        assert OutputManager().format == OutputFormat.PLAIN

    def test_auto_is_rich_on_terminal(self, tty):
        assert OutputManager().format == OutputFormat.RICH

    def test_no_color_forces_plain(self, tty):
        assert OutputManager(no_color=True).format == OutputFormat.PLAIN

    def test_no_color_env(self, tty, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert OutputManager().format == OutputFormat.PLAIN

    def test_explicit_format_kept(self, tty):
        assert OutputManager(format=OutputFormat.JSON).format == OutputFormat.JSON


class TestColorDisabledByEnv:
    def test_nothing_set(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert not _color_disabled_by_env()

    def test_dumb_terminal(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _color_disabled_by_env()


# ------------------------------------------------------------------ #
# stdout
# ------------------------------------------------------------------ #


class TestPrintDocument:
    @pytest.mark.parametrize("fmt", [OutputFormat.JSON, OutputFormat.PLAIN])
    def test_parseable_json(self, capsys, fmt):
        OutputManager(format=fmt).print_document({"declarations": [], "mode": "handler"})
        captured = capsys.readouterr()
        assert json.loads(captured.out) == {"declarations": [], "mode": "handler"}
        assert captured.err == ""

    def test_rich_highlights(self, capsys, tty):
        OutputManager(format=OutputFormat.RICH).print_document({"mode": "server"})
        assert "server" in capsys.readouterr().out


class TestPrintTable:
    HEADERS = ["Declaration", "Depends on"]
    ROWS = [["Category", ""], ["Pet", "Category"]]

    def test_json_records(self, capsys):
        OutputManager(format=OutputFormat.JSON).print_table(self.HEADERS, self.ROWS)
        records = json.loads(capsys.readouterr().out)
        assert records == [
            {"Declaration": "Category", "Depends on": ""},
            {"Declaration": "Pet", "Depends on": "Category"},
        ]

    def test_plain_tsv(self, capsys):
        OutputManager(format=OutputFormat.PLAIN).print_table(self.HEADERS, self.ROWS)
        lines = capsys.readouterr().out.splitlines()
        assert lines == ["Declaration\tDepends on", "Category\t", "Pet\tCategory"]

    def test_rich_table(self, capsys, tty):
        OutputManager(format=OutputFormat.RICH).print_table(self.HEADERS, self.ROWS, title="Schemas")
        out = capsys.readouterr().out
        assert "Declaration" in out
        assert "Pet" in out


# ------------------------------------------------------------------ #
# stderr
# ------------------------------------------------------------------ #


class TestDiagnostics:
    def test_error_goes_to_stderr(self, capsys):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).error("boom")
        captured = capsys.readouterr()
        assert captured.out == ""
        assert captured.err.strip() == "Error: boom"

    def test_warning_prefix(self, capsys):
        OutputManager(no_color=True).warning("careful")
        assert capsys.readouterr().err.strip() == "Warning: careful"

    def test_suggest_arrow(self, capsys):
        OutputManager(no_color=True).suggest("try --mode server")
        assert capsys.readouterr().err.strip() == "→ try --mode server"

    def test_styled_success_text(self, capsys, non_tty):
        OutputManager().success("Wrote 4 declarations")
        assert "Wrote 4 declarations" in capsys.readouterr().err

    def test_quiet_hides_informational(self, capsys):
        manager = OutputManager(no_color=True, quiet=True)
        manager.info("info")
        manager.success("done")
        manager.suggest("hint")
        assert capsys.readouterr().err == ""

    def test_quiet_keeps_warnings_and_errors(self, capsys):
        manager = OutputManager(no_color=True, quiet=True)
        manager.warning("w")
        manager.error("e")
        err = capsys.readouterr().err
        assert "Warning: w" in err
        assert "Error: e" in err

    def test_flags_exposed(self):
        manager = OutputManager(quiet=True, verbose=True)
        assert manager.is_quiet
        assert manager.is_verbose


# ------------------------------------------------------------------ #
# Global instance
# ------------------------------------------------------------------ #


class TestGlobalInstance:
    def test_lazy_default(self):
        reset_output()
        first = get_output()
        assert first is get_output()

    def test_set_and_reset(self):
        manager = OutputManager(format=OutputFormat.JSON)
        set_output(manager)
        assert get_output() is manager
        reset_output()
        assert get_output() is not manager

    def test_helpers_forward(self, capsys):
        set_output(OutputManager(format=OutputFormat.PLAIN, no_color=True))
        output_module.print_data("raw line")
        output_module.print_table(["A"], [["1"]])
        output_module.error("bad")
        output_module.info("note")
        captured = capsys.readouterr()
        assert captured.out.splitlines() == ["raw line", "A", "1"]
        assert "Error: bad" in captured.err
        assert "note" in captured.err

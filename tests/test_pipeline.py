from pathlib import Path

import pytest

from histshow import (
    UNKNOWN_TIMESTAMP,
    CommandRecord,
    HistoryFileError,
    HistoryParseError,
    HistorySet,
    MalformedRecordError,
    ShellDetectionError,
    ShellKind,
    load_history,
)
from tests.helpers import FakeResolver


def test_load_history_bash_end_to_end(tmp_path: Path, write_history) -> None:
    # GIVEN a bash parent and a bash history with a trailing newline
    write_history(ShellKind.BASH, "ls\ncd /tmp\n")

    # WHEN loading the history
    history = load_history(resolver=FakeResolver("bash"), home=tmp_path)

    # THEN every line, including the empty last one, is a record without a timestamp
    assert history == HistorySet(
        kind=ShellKind.BASH,
        records=(
            CommandRecord(timestamp=UNKNOWN_TIMESTAMP, text="ls"),
            CommandRecord(timestamp=UNKNOWN_TIMESTAMP, text="cd /tmp"),
            CommandRecord(timestamp=UNKNOWN_TIMESTAMP, text=""),
        ),
    )
    assert len(history) == 3


def test_load_history_fish_end_to_end(tmp_path: Path, write_history) -> None:
    write_history(ShellKind.FISH, "- cmd: echo hi\n  when: 10\n- cmd: echo a:b\n  when: 20\n")

    history = load_history(resolver=FakeResolver("fish"), home=tmp_path)

    assert history.kind is ShellKind.FISH
    assert list(history) == [
        CommandRecord(timestamp=10, text="echo hi"),
        CommandRecord(timestamp=20, text="echo a:b"),
    ]


def test_load_history_picks_the_file_of_the_invoking_shell(tmp_path: Path, write_history) -> None:
    # GIVEN both history files exist
    write_history(ShellKind.BASH, "from-bash")
    write_history(ShellKind.FISH, "- cmd: from-fish\n  when: 1\n")

    # WHEN the parent is fish
    history = load_history(resolver=FakeResolver("fish"), home=tmp_path)

    # THEN the fish file is read, regardless of the bash file being present
    assert [r.text for r in history] == ["from-fish"]


def test_load_history_preserves_on_disk_order(tmp_path: Path, write_history) -> None:
    # Timestamps deliberately out of order: no sorting may happen
    write_history(ShellKind.FISH, "- cmd: c\n  when: 30\n- cmd: a\n  when: 10\n- cmd: b\n  when: 20\n")

    history = load_history(resolver=FakeResolver("fish"), home=tmp_path)

    assert [r.text for r in history] == ["c", "a", "b"]


def test_load_history_fails_on_unknown_shell_without_reading_files(tmp_path: Path, write_history) -> None:
    write_history(ShellKind.BASH, "ls\n")

    with pytest.raises(ShellDetectionError) as excinfo:
        load_history(resolver=FakeResolver("zsh"), home=tmp_path)

    assert excinfo.value.stage == "resolve"
    assert str(excinfo.value) == "resolve: Unsupported shell: zsh"


def test_load_history_fails_when_parent_cannot_be_resolved(tmp_path: Path) -> None:
    with pytest.raises(ShellDetectionError) as excinfo:
        load_history(resolver=FakeResolver(None), home=tmp_path)

    assert excinfo.value.stage == "resolve"


def test_load_history_reports_missing_file_at_load_stage(tmp_path: Path) -> None:
    with pytest.raises(HistoryFileError) as excinfo:
        load_history(resolver=FakeResolver("bash"), home=tmp_path)

    assert excinfo.value.stage == "load"
    assert excinfo.value.path == tmp_path / ".bash_history"


def test_load_history_defaults_home_to_the_user_home(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, write_history
) -> None:
    monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
    write_history(ShellKind.BASH, "whoami")

    history = load_history(resolver=FakeResolver("bash"))

    assert [r.text for r in history] == ["whoami"]


def test_load_history_reports_malformed_fish_line_at_sanitize_stage(tmp_path: Path, write_history) -> None:
    write_history(ShellKind.FISH, "- cmd: ls\n  when: 1\nfoo: bar: baz\n")

    with pytest.raises(MalformedRecordError) as excinfo:
        load_history(resolver=FakeResolver("fish"), home=tmp_path)

    assert excinfo.value.stage == "sanitize"
    assert excinfo.value.line_number == 3


def test_load_history_reports_schema_errors_at_parse_stage(tmp_path: Path, write_history) -> None:
    write_history(ShellKind.FISH, "- cmd: ls\n")

    with pytest.raises(HistoryParseError) as excinfo:
        load_history(resolver=FakeResolver("fish"), home=tmp_path)

    assert excinfo.value.stage == "parse"


def test_load_history_fails_when_home_cannot_be_determined(monkeypatch: pytest.MonkeyPatch) -> None:
    # GIVEN no home directory can be resolved from the environment
    def no_home(cls):
        raise RuntimeError("Could not determine home directory.")

    monkeypatch.setattr(Path, "home", classmethod(no_home))

    # WHEN loading without an explicit home
    with pytest.raises(HistoryFileError, match="home directory") as excinfo:
        load_history(resolver=FakeResolver("bash"))

    # THEN it fails at the load stage instead of guessing a directory
    assert excinfo.value.stage == "load"
    assert isinstance(excinfo.value.__cause__, RuntimeError)

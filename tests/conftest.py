from pathlib import Path

import pytest

from histshow import HISTORY_PATHS, ShellKind


@pytest.fixture
def write_history(tmp_path: Path):
    """Writes a history file for the given shell under a fake home directory (tmp_path)."""

    def _write(kind: ShellKind, contents: str | bytes) -> Path:
        path = tmp_path / HISTORY_PATHS[kind]
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(contents, bytes):
            path.write_bytes(contents)
        else:
            path.write_text(contents, encoding="utf-8", newline="")
        return path

    return _write

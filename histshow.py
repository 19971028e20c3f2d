#!/usr/bin/env python3
"""
histshow.py - Print the history of the shell that invoked it

**How it works**

The tool never guesses the history format from what happens to exist on disk.
It asks the operating system for its parent process, takes that process's
executable name, and only then knows whether it is reading bash or fish
history. Everything downstream is a straight pipeline:

1.  **Resolve:** `resolve_invoking_shell()` maps the parent executable to a `ShellKind`.
2.  **Load:** `load_raw()` reads the shell's history file from the home directory, verbatim.
3.  **Sanitize (fish only):** `sanitize()` rewrites `cmd:` lines whose value contains colons
    into quoted scalars, so the YAML parser sees one opaque string.
4.  **Parse:** a `HistoryParser` per shell turns the text into `CommandRecord`s, in file order.
5.  **Format:** `format_history()` renders `[index\\t][timestamp\\t]command` lines.

Every failure is a `HistoryError` subclass carrying the stage it came from.
Nothing is skipped: a history that cannot be read completely is not printed at all.

**Adding a shell**

1.  Add a member to `ShellKind` whose value is the executable name.
2.  Add its relative history path to `HISTORY_PATHS`.
3.  Write a `HistoryParser` subclass and register it in `PARSERS`.
"""

from __future__ import annotations

import argparse
import logging
import os
import re
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Iterator

import psutil
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax
from rich.text import Text
from rich.theme import Theme

from shell_lexer import ShellLexer, ShellTheme

logger = logging.getLogger(__name__)

# ============================================================================
# CONFIGURATION & CONSTANTS
# ============================================================================

CUSTOM_THEME = Theme({
    "info": "#61AFEF",
    "success": "#98C379",
    "warning": "#E5C07B",
    "error": "#E06C75",
    "stage": "bold #C678DD",
    "index": "#5C6370",
    "timestamp": "#61AFEF",
})

console = Console(stderr=True, theme=CUSTOM_THEME)

# Sentinel for formats that don't record when a command ran
UNKNOWN_TIMESTAMP = None

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# A record line in fish_history: "- key: value" or an indented "  key: value"
FISH_FIELD_RE = re.compile(r"^(?:-\s+|\s+)\w+:\s(.*)$")
WHEN_RE = re.compile(r"^[-+]?\d+$")


class ShellKind(Enum):
    """Supported shells, valued by the executable name that identifies them."""

    BASH = "bash"
    FISH = "fish"


# Relative to the user's home directory
HISTORY_PATHS: dict[ShellKind, Path] = {
    ShellKind.BASH: Path(".bash_history"),
    ShellKind.FISH: Path(".local/share/fish/fish_history"),
}

# ============================================================================
# ERRORS
# ============================================================================


class HistoryError(Exception):
    """Base class for every failure of the history pipeline."""

    def __init__(self, message: str, *, stage: str | None = None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        if self.stage:
            return f"{self.stage}: {self.message}"
        return self.message


class ShellDetectionError(HistoryError):
    """The parent process is gone, unreadable, or not a supported shell."""


class HistoryFileError(HistoryError):
    """The history file is missing, unreadable, or not text."""

    def __init__(self, message: str, path: Path | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.path = path


class MalformedRecordError(HistoryError):
    """A fish history line has several colons but no `key: value` shape."""

    def __init__(self, message: str, line_number: int, line: str, **kwargs):
        super().__init__(message, **kwargs)
        self.line_number = line_number
        self.line = line


class HistoryParseError(HistoryError):
    """The structured history document does not have the expected schema."""


# ============================================================================
# DATA STRUCTURES
# ============================================================================


@dataclass(frozen=True)
class CommandRecord:
    """One command from the history file."""

    timestamp: int | None
    text: str

    @property
    def has_timestamp(self) -> bool:
        return self.timestamp is not UNKNOWN_TIMESTAMP


@dataclass(frozen=True)
class HistorySet:
    """All records of one shell's history, oldest first, in on-disk order."""

    kind: ShellKind
    records: tuple[CommandRecord, ...]

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[CommandRecord]:
        return iter(self.records)


@dataclass(frozen=True)
class DisplayOptions:
    show_index: bool = False
    show_timestamp: bool = False
    color: bool = False


# ============================================================================
# PROCESS ANCESTRY
# ============================================================================


class ProcessResolver(ABC):
    """Finds the executable name of the process that started us."""

    @abstractmethod
    def resolve_parent_executable_name(self) -> str:
        """Returns the parent's executable base name, e.g. "fish"."""
        raise NotImplementedError


class PsutilProcessResolver(ProcessResolver):
    """Looks the parent process up in the OS process table through psutil."""

    def __init__(self, pid: int | None = None):
        self.pid = os.getppid() if pid is None else pid

    def resolve_parent_executable_name(self) -> str:
        try:
            parent = psutil.Process(self.pid)
            # exe() is empty for some kernel-owned or sandboxed processes
            executable = parent.exe() or parent.name()
        except psutil.NoSuchProcess as e:
            raise ShellDetectionError(f"Unable to find parent process {self.pid}") from e
        except psutil.AccessDenied as e:
            raise ShellDetectionError(f"Not allowed to inspect parent process {self.pid}") from e

        name = Path(executable).name
        if not name:
            raise ShellDetectionError(f"Unable to get executable name of process {self.pid}")
        logger.debug("Parent process %d runs %s", self.pid, executable)
        return name


def resolve_invoking_shell(resolver: ProcessResolver | None = None) -> ShellKind:
    """→ Maps the parent executable name to a ShellKind by exact match"""
    resolver = resolver or PsutilProcessResolver()
    name = resolver.resolve_parent_executable_name()
    try:
        kind = ShellKind(name)
    except ValueError:
        raise ShellDetectionError(f"Unsupported shell: {name}") from None
    logger.debug("Invoking shell is %s", kind.value)
    return kind


# ============================================================================
# FILE I/O
# ============================================================================


def history_path(kind: ShellKind, home: Path) -> Path:
    return home / HISTORY_PATHS[kind]


def load_raw(kind: ShellKind, home: Path) -> str:
    """→ File I/O: Returns the full text of the shell's history file, verbatim"""
    path = history_path(kind, home)
    try:
        # newline="" keeps the file's line endings exactly as written
        with path.open("r", encoding="utf-8", newline="") as f:
            contents = f.read()
    except FileNotFoundError as e:
        raise HistoryFileError(f"History file not found at '{path}'", path=path) from e
    except UnicodeDecodeError as e:
        raise HistoryFileError(f"History file '{path}' is not valid UTF-8 text", path=path) from e
    except OSError as e:
        raise HistoryFileError(f"Error reading history file '{path}': {e.strerror or e}", path=path) from e
    logger.debug("Read %d characters from %s", len(contents), path)
    return contents


# ============================================================================
# FISH SANITIZING
# ============================================================================


def sanitize_line(line: str, line_number: int = 1) -> str:
    """→ Forces a multi-colon fish field into a quoted `cmd` scalar; other lines pass through"""
    if line.count(":") <= 1:
        return line
    match = FISH_FIELD_RE.match(line)
    if not match:
        raise MalformedRecordError(
            f"Line {line_number} has several colons but is not a 'key: value' field: {line!r}",
            line_number=line_number,
            line=line,
        )
    value = match.group(1).replace('"', '\\"')
    return f'- cmd: "{value}"'


def sanitize(raw: str) -> str:
    """Rewrites fish history line by line, keeping line count and order."""
    sanitized = [sanitize_line(line, i) for i, line in enumerate(raw.split("\n"), start=1)]
    logger.debug("Sanitized %d fish history lines", len(sanitized))
    return "\n".join(sanitized)


# ============================================================================
# PARSERS
# ============================================================================


class HistoryParser(ABC):
    """Turns the text of one shell's history file into ordered records."""

    kind: ShellKind

    @abstractmethod
    def parse(self, text: str) -> list[CommandRecord]:
        raise NotImplementedError


class BashHistoryParser(HistoryParser):
    """Plain bash history: one command per line, no timestamps."""

    kind = ShellKind.BASH

    def parse(self, text: str) -> list[CommandRecord]:
        # A trailing newline yields a trailing empty record, same as the file's line count
        return [CommandRecord(timestamp=UNKNOWN_TIMESTAMP, text=line) for line in text.split("\n")]


class FishHistoryParser(HistoryParser):
    """
    fish_history: a YAML-ish list of `cmd`/`when` mappings.

    Expects text that already went through `sanitize()`.
    """

    kind = ShellKind.FISH

    def parse(self, text: str) -> list[CommandRecord]:
        document = self.load_document(text)
        if document is None:
            return []
        if not isinstance(document, list):
            raise HistoryParseError(
                f"Expected a list of history entries, got {type(document).__name__}"
            )
        return [self.to_record(position, item) for position, item in _join_fragments(document)]

    @staticmethod
    def load_document(sanitized: str) -> Any:
        try:
            return yaml.load(sanitized, Loader=FishLoader)
        except yaml.YAMLError as e:
            raise HistoryParseError(f"Unable to parse fish history: {e}") from e

    @staticmethod
    def to_record(position: int, item: dict) -> CommandRecord:
        cmd = item.get("cmd")
        when = item.get("when")
        # An empty plain value is YAML's null, not a command
        if not isinstance(cmd, str) or (cmd == "" and not isinstance(cmd, QuotedScalar)):
            raise HistoryParseError(f"Entry {position} has no 'cmd' string")
        if not isinstance(when, str) or isinstance(when, QuotedScalar) or not WHEN_RE.match(when):
            raise HistoryParseError(f"Entry {position} has no integer 'when'")
        return CommandRecord(timestamp=int(when), text=str(cmd))


class QuotedScalar(str):
    """A scalar that was written in quotes, so it is text and never a number or null."""


class FishLoader(yaml.BaseLoader):
    """
    BaseLoader keeps every scalar a string, so `- cmd: yes` stays "yes".

    Quoted scalars come back as `QuotedScalar` so the schema check can tell
    `when: 10` from `when: "10"`.
    """


def _construct_str(loader: FishLoader, node: yaml.ScalarNode) -> str:
    value = loader.construct_scalar(node)
    return QuotedScalar(value) if node.style in ("'", '"') else value


FishLoader.add_constructor("tag:yaml.org,2002:str", _construct_str)


def _join_fragments(items: Iterable[Any]) -> Iterator[tuple[int, dict]]:
    """
    Yields (position, mapping) for each record, merging split fragments.

    Sanitizing always emits a list item, so a rewritten field that used to sit
    under another key's `- ` starts an element of its own. An element missing
    `cmd` or `when` absorbs the following element when that one holds only keys
    the first lacks.
    """
    pending: dict | None = None
    pending_position = 0
    for position, item in enumerate(items):
        if not isinstance(item, dict):
            raise HistoryParseError(f"Entry {position} is not a mapping")
        if (
            pending is not None
            and not pending.keys() >= {"cmd", "when"}
            and not pending.keys() & item.keys()
        ):
            pending = {**pending, **item}
            continue
        if pending is not None:
            yield pending_position, pending
        pending, pending_position = item, position
    if pending is not None:
        yield pending_position, pending


PARSERS: dict[ShellKind, HistoryParser] = {
    parser.kind: parser for parser in (BashHistoryParser(), FishHistoryParser())
}

# ============================================================================
# PIPELINE
# ============================================================================


def load_history(resolver: ProcessResolver | None = None, home: Path | None = None) -> HistorySet:
    """→ Pipeline: resolve the shell, load its history file and parse it"""
    stage = "resolve"
    try:
        kind = resolve_invoking_shell(resolver)

        stage = "load"
        if home is None:
            try:
                home = Path.home()
            except RuntimeError as e:
                raise HistoryFileError("Unable to determine the home directory") from e
        raw = load_raw(kind, home)

        if kind is ShellKind.FISH:
            stage = "sanitize"
            raw = sanitize(raw)

        stage = "parse"
        records = PARSERS[kind].parse(raw)
    except HistoryError as e:
        e.stage = e.stage or stage
        raise
    logger.debug("Loaded %d %s history records", len(records), kind.value)
    return HistorySet(kind=kind, records=tuple(records))


# ============================================================================
# FORMATTING
# ============================================================================


def format_timestamp(timestamp: int) -> str:
    try:
        return datetime.fromtimestamp(timestamp).strftime(TIMESTAMP_FORMAT)
    except (ValueError, OverflowError, OSError):
        # Outside what the platform's calendar can represent
        return str(timestamp)


def _shows_timestamp(kind: ShellKind, record: CommandRecord, options: DisplayOptions) -> bool:
    # Only fish records when a command ran
    return options.show_timestamp and kind is ShellKind.FISH and record.has_timestamp


def format_record(index: int, record: CommandRecord, kind: ShellKind, options: DisplayOptions) -> str:
    """→ Renders one record as `[index\\t][timestamp\\t]command`"""
    fields = []
    if options.show_index:
        fields.append(str(index))
    if _shows_timestamp(kind, record, options):
        fields.append(format_timestamp(record.timestamp))
    fields.append(record.text)
    return "\t".join(fields)


def format_history(history: HistorySet, options: DisplayOptions) -> Iterator[str]:
    for index, record in enumerate(history):
        yield format_record(index, record, history.kind, options)


def render_record(index: int, record: CommandRecord, kind: ShellKind, options: DisplayOptions) -> Text:
    """→ Like format_record, but with the command highlighted by ShellLexer"""
    line = Text()
    if options.show_index:
        line.append(f"{index}\t", style="index")
    if _shows_timestamp(kind, record, options):
        line.append(f"{format_timestamp(record.timestamp)}\t", style="timestamp")
    syntax = Syntax(record.text, ShellLexer(stripnl=False, ensurenl=False), theme=ShellTheme())
    highlighted = syntax.highlight(record.text)
    if highlighted.plain.endswith("\n") and not record.text.endswith("\n"):
        highlighted.right_crop(1)
    line.append_text(highlighted)
    return line


# ============================================================================
# MAIN
# ============================================================================


def _configure_logging(verbose: bool) -> None:
    handler = RichHandler(console=console, show_time=False, show_path=False)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )


def _build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="histshow",
        description="Print the command history of the invoking shell (bash or fish) to stdout",
    )
    ap.add_argument("-n", "--index", action="store_true", help="Prefix each command with its 0-based index")
    ap.add_argument(
        "-t", "--timestamp", action="store_true", help="Prefix each command with when it ran (fish only)"
    )
    ap.add_argument("--color", action="store_true", help="Syntax-highlight commands")
    ap.add_argument("-v", "--verbose", action="store_true", help="Log pipeline steps to stderr")
    return ap


class PipeConsole(Console):
    """A stdout Console that leaves a closed pipe to `main()` instead of exiting with status 1."""

    def on_broken_pipe(self) -> None:
        raise BrokenPipeError


def _write_history(history: HistorySet, options: DisplayOptions) -> None:
    if options.color:
        out_console = PipeConsole(theme=CUSTOM_THEME, highlight=False, soft_wrap=True)
        for index, record in enumerate(history):
            out_console.print(render_record(index, record, history.kind, options))
        return
    out = sys.stdout
    for line in format_history(history, options):
        out.write(line + "\n")
    out.flush()


def main(argv: list[str] | None = None, resolver: ProcessResolver | None = None, home: Path | None = None) -> int:
    """→ Main: loads the invoking shell's history and prints it"""
    args = _build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    options = DisplayOptions(show_index=args.index, show_timestamp=args.timestamp, color=args.color)

    try:
        history = load_history(resolver=resolver, home=home)
    except HistoryError as e:
        console.print(
            Text.assemble(("Error", "error"), " [", (e.stage or "load", "stage"), "] ", e.message),
            soft_wrap=True,
        )
        return 1

    try:
        _write_history(history, options)
    except BrokenPipeError:
        # Downstream consumer closed early (e.g., piped to `head`). Exit cleanly.
        # Point stdout at devnull so the interpreter's final flush doesn't raise again
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
        return 0
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

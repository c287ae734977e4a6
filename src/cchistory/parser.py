"""Extract shell commands from Claude Code JSONL transcripts.

Each transcript line is one JSON entry. Assistant entries may carry a ``Bash``
tool invocation, user entries may carry a ``! cmd`` shell escape, and later
user entries carry the ``tool_result`` blocks that tell us whether an earlier
invocation failed. Everything in here is a generator so a consumer can stop
pulling at any point without the rest of a transcript being read.
"""

import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from .diagnostics import DECODE, READ, Diagnostic, Reporter, echo_diagnostic

SHELL_TOOL_NAMES = frozenset({"Bash"})

SOURCE_BASH = "bash"
SOURCE_USER = "user"

BANG_PREFIX = "! "
BASH_INPUT_PATTERN = re.compile(r"<bash-input>(.*?)</bash-input>", re.DOTALL)

# Separator used when folding multi-line commands onto one history line (zsh style)
LINE_JOINER = "\\n"


@dataclass
class RawEntry:
    """One decoded transcript line. Fields the extractor does not use are dropped."""

    type: str | None
    content: Any = None
    timestamp: str | None = None
    cwd: str | None = None

    @classmethod
    def from_dict(cls, obj: dict) -> "RawEntry":
        message = obj.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        entry_type = obj.get("type")
        timestamp = obj.get("timestamp")
        cwd = obj.get("cwd")
        return cls(
            type=entry_type if isinstance(entry_type, str) else None,
            content=content,
            timestamp=timestamp if isinstance(timestamp, str) else None,
            cwd=cwd if isinstance(cwd, str) and cwd else None,
        )


@dataclass
class Command:
    timestamp: datetime
    command: str
    source: str
    project_path: str | None = None
    description: str | None = None
    # None until the correlator has seen a result (or given up at end of file)
    success: bool | None = None


@dataclass
class PendingCommand:
    tool_use_id: str
    command: Command
    order: int


def parse_timestamp(value) -> datetime | None:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


def normalize_command(command: str) -> str:
    """Fold a multi-line command onto one line.

    Lines are trimmed, blank lines dropped and the rest joined with a literal
    backslash-n, the way zsh writes multi-line entries to its history file.
    """
    lines = [line.strip() for line in command.splitlines()]
    return LINE_JOINER.join(line for line in lines if line)


def decode_line(
    line: str | bytes,
    *,
    path: Path | None = None,
    line_number: int = 0,
    report: Reporter = echo_diagnostic,
) -> RawEntry | None:
    """Decode one transcript line.

    ``line`` may be raw bytes, in which case it is decoded as UTF-8 here so an
    undecodable line is reported like any other bad line. Blank lines return
    None silently. Lines that are not a JSON object are reported to
    ``report`` and also return None.
    """
    if not line.strip():
        return None
    try:
        if isinstance(line, bytes):
            line = line.decode("utf-8")
        obj = json.loads(line)
    except UnicodeDecodeError:
        error_class = "encoding"
    except (ValueError, RecursionError):
        # JSONDecodeError, and oversized integer literals
        error_class = "JSON syntax"
    else:
        if isinstance(obj, dict):
            return RawEntry.from_dict(obj)
        error_class = "parsing"
    report(
        Diagnostic(
            kind=DECODE,
            message=f"Error parsing line {line_number} in {path}: {error_class} error",
            path=path,
            line_number=line_number,
            error_class=error_class,
        )
    )
    return None


def _make_command(command_text, entry: RawEntry, source: str, description=None, now=None):
    if not isinstance(command_text, str):
        return None
    normalized = normalize_command(command_text)
    if not normalized:
        return None
    timestamp = parse_timestamp(entry.timestamp)
    if timestamp is None:
        timestamp = now or datetime.now(timezone.utc)
    if not isinstance(description, str) or not description:
        description = None
    return Command(
        timestamp=timestamp,
        command=normalized,
        source=source,
        project_path=entry.cwd,
        description=description,
    )


def find_shell_tool_block(content, tool_names=SHELL_TOOL_NAMES):
    """Return the first tool_use block in ``content`` that runs a shell command."""
    if not isinstance(content, list):
        return None
    for block in content:
        if (
            isinstance(block, dict)
            and block.get("type") == "tool_use"
            and block.get("name") in tool_names
        ):
            return block
    return None


def extract_bash_command(entry: RawEntry, *, now=None, tool_names=SHELL_TOOL_NAMES):
    """Extract the assistant-issued command from an entry.

    Returns ``(tool_use_id, command)`` or None. ``tool_use_id`` is None when
    the invocation block carries no id.
    """
    if entry.type != "assistant":
        return None
    block = find_shell_tool_block(entry.content, tool_names)
    if block is None:
        return None
    tool_input = block.get("input")
    if not isinstance(tool_input, dict):
        return None
    command = _make_command(
        tool_input.get("command"),
        entry,
        SOURCE_BASH,
        description=tool_input.get("description"),
        now=now,
    )
    if command is None:
        return None
    tool_use_id = block.get("id")
    if not isinstance(tool_use_id, str) or not tool_use_id:
        tool_use_id = None
    return tool_use_id, command


def find_user_command(text: str) -> str | None:
    """Find a command the user typed directly into the shell escape.

    The first line starting with ``"! "`` wins; otherwise the body of a
    ``<bash-input>`` tag is used.
    """
    for line in text.splitlines():
        stripped = line.lstrip()
        if stripped.startswith(BANG_PREFIX):
            command = stripped[len(BANG_PREFIX) :].strip()
            if command:
                return command
    match = BASH_INPUT_PATTERN.search(text)
    if match:
        command = match.group(1).strip()
        if command:
            return command
    return None


def extract_user_command(entry: RawEntry, *, now=None) -> Command | None:
    # Shell escapes are only ever recorded as plain string content
    if entry.type != "user" or not isinstance(entry.content, str):
        return None
    command_text = find_user_command(entry.content)
    if command_text is None:
        return None
    command = _make_command(command_text, entry, SOURCE_USER, now=now)
    if command is not None:
        # No result channel exists for user-typed commands
        command.success = True
    return command


class SuccessCorrelator:
    """Pair shell invocations with the tool_result blocks that answer them.

    Results may be interleaved with unrelated entries and need not arrive in
    the order the invocations were issued, so pending commands are held by id
    until a result shows up or the file ends. One instance per transcript file.
    """

    def __init__(self):
        self._pending: dict[str, PendingCommand] = {}
        self._seen: set[str] = set()
        self._order = 0

    def __len__(self):
        return len(self._pending)

    def track(self, tool_use_id: str, command: Command) -> bool:
        """Hold ``command`` until its result arrives.

        Returns False (and drops the command) when the id was already tracked.
        """
        if tool_use_id in self._seen:
            return False
        self._seen.add(tool_use_id)
        self._pending[tool_use_id] = PendingCommand(tool_use_id, command, self._order)
        self._order += 1
        return True

    def resolve(self, tool_use_id: str, is_error: bool) -> Command | None:
        pending = self._pending.pop(tool_use_id, None)
        if pending is None:
            return None
        pending.command.success = not is_error
        return pending.command

    def resolve_entry(self, entry: RawEntry) -> Iterator[Command]:
        """Yield the commands completed by the tool_result blocks in ``entry``."""
        if entry.type != "user" or not isinstance(entry.content, list):
            return
        for block in entry.content:
            if not isinstance(block, dict) or block.get("type") != "tool_result":
                continue
            tool_use_id = block.get("tool_use_id")
            if not isinstance(tool_use_id, str):
                continue
            command = self.resolve(tool_use_id, bool(block.get("is_error")))
            if command is not None:
                yield command

    def flush(self) -> list[Command]:
        """Release every command still waiting, oldest first, as successful."""
        pending = sorted(self._pending.values(), key=lambda item: item.order)
        self._pending.clear()
        flushed = []
        for item in pending:
            item.command.success = True
            flushed.append(item.command)
        return flushed


def process_entry(entry: RawEntry, correlator: SuccessCorrelator, *, now=None) -> Iterator[Command]:
    """Feed one entry through extraction and correlation."""
    candidate = extract_bash_command(entry, now=now)
    if candidate is not None:
        tool_use_id, command = candidate
        if tool_use_id is None:
            command.success = True
            yield command
        else:
            correlator.track(tool_use_id, command)

    user_command = extract_user_command(entry, now=now)
    if user_command is not None:
        yield user_command

    yield from correlator.resolve_entry(entry)


def stream_file(path, *, report: Reporter = echo_diagnostic) -> Iterator[Command]:
    """Yield every command in one transcript file, in line order.

    Lines are read as bytes and decoded one at a time, so a bad line only
    costs that line. Read errors are reported and end the stream; commands
    whose result never arrived are released at the end as successful.
    """
    path = Path(path)
    correlator = SuccessCorrelator()
    try:
        with open(path, "rb") as f:
            for line_number, line in enumerate(f, start=1):
                entry = decode_line(line, path=path, line_number=line_number, report=report)
                if entry is None:
                    continue
                yield from process_entry(entry, correlator)
    except OSError as e:
        report(
            Diagnostic(
                kind=READ,
                message=f"Error reading file {path}: {e}",
                path=path,
                error_class=type(e).__name__,
            )
        )
    yield from correlator.flush()


def list_transcripts(project_dir, *, report: Reporter = echo_diagnostic) -> list[Path]:
    """Return the project's ``*.jsonl`` files, oldest modification first."""
    project_dir = Path(project_dir)
    try:
        candidates = sorted(p for p in project_dir.iterdir() if p.suffix == ".jsonl")
    except OSError as e:
        report(
            Diagnostic(
                kind=READ,
                message=f"Error reading project directory {project_dir}: {e}",
                path=project_dir,
                error_class=type(e).__name__,
            )
        )
        return []

    dated = []
    for candidate in candidates:
        try:
            stat = candidate.stat()
        except OSError as e:
            report(
                Diagnostic(
                    kind=READ,
                    message=f"Error reading file {candidate}: {e}",
                    path=candidate,
                    error_class=type(e).__name__,
                )
            )
            continue
        if not candidate.is_file():
            continue
        dated.append((stat.st_mtime, candidate))
    dated.sort(key=lambda item: item[0])
    return [path for _, path in dated]


def stream_project(project_dir, *, report: Reporter = echo_diagnostic) -> Iterator[Command]:
    """Concatenate the file streams of one project in file modification order.

    Each transcript is one session, so files are assumed not to overlap in
    time and are chained rather than merged.
    """
    for path in list_transcripts(project_dir, report=report):
        yield from stream_file(path, report=report)

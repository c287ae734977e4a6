"""Tests for transcript line decoding and command extraction."""

import json
from datetime import datetime, timezone

from cchistory import parser
from cchistory.parser import RawEntry


def _assistant(content, **extra):
    entry = {"type": "assistant", "message": {"role": "assistant", "content": content}}
    entry.update(extra)
    return RawEntry.from_dict(entry)


def _user(content, **extra):
    entry = {"type": "user", "message": {"role": "user", "content": content}}
    entry.update(extra)
    return RawEntry.from_dict(entry)


def test_normalize_single_line_is_trimmed():
    assert parser.normalize_command("  git status  ") == "git status"


def test_normalize_folds_lines_with_literal_backslash_n():
    assert parser.normalize_command("a\n  b\n\nc") == "a\\nb\\nc"


def test_normalize_handles_crlf():
    assert parser.normalize_command("for f in *; do\r\n  echo $f\r\ndone") == "for f in *; do\\necho $f\\ndone"


def test_decode_line_blank_is_silent():
    reported = []

    assert parser.decode_line("   \n", report=reported.append) is None
    assert reported == []


def test_decode_line_reports_syntax_error(tmp_path):
    reported = []
    path = tmp_path / "session.jsonl"

    entry = parser.decode_line("{not json", path=path, line_number=7, report=reported.append)

    assert entry is None
    assert len(reported) == 1
    assert reported[0].kind == "decode"
    assert reported[0].line_number == 7
    assert reported[0].path == path
    assert reported[0].error_class == "JSON syntax"
    assert "line 7" in reported[0].message


def test_decode_line_rejects_non_object():
    reported = []

    assert parser.decode_line("[1, 2, 3]", report=reported.append) is None
    assert reported[0].error_class == "parsing"


def test_decode_line_accepts_bytes():
    entry = parser.decode_line(b'{"type": "user", "cwd": "/w"}\n')

    assert entry == RawEntry(type="user", cwd="/w")


def test_decode_line_reports_invalid_utf8():
    reported = []

    assert parser.decode_line(b'{"bad": "\xff\xfe"}\n', line_number=3, report=reported.append) is None
    assert [(d.error_class, d.line_number) for d in reported] == [("encoding", 3)]


def test_decode_line_reports_oversized_integer():
    reported = []
    line = '{"n": ' + "1" * 5000 + "}"

    assert parser.decode_line(line, report=reported.append) is None
    assert reported[0].error_class == "JSON syntax"


def test_parse_timestamp():
    utc = timezone.utc

    assert parser.parse_timestamp("2025-06-17T10:08:01Z") == datetime(2025, 6, 17, 10, 8, 1, tzinfo=utc)
    assert parser.parse_timestamp("2025-06-17T12:08:01+02:00") == datetime(2025, 6, 17, 10, 8, 1, tzinfo=utc)
    assert parser.parse_timestamp("2025-06-17T10:08:01") == datetime(2025, 6, 17, 10, 8, 1, tzinfo=utc)
    assert parser.parse_timestamp("yesterday") is None
    assert parser.parse_timestamp(None) is None


def test_decode_line_ignores_unknown_fields():
    line = json.dumps(
        {
            "type": "assistant",
            "uuid": "abc",
            "version": "9.9.9",
            "message": {"role": "assistant", "content": [], "model": "x"},
            "timestamp": "2025-06-07T12:00:00.000Z",
            "cwd": "/Users/test/project",
        }
    )

    entry = parser.decode_line(line)

    assert entry.type == "assistant"
    assert entry.cwd == "/Users/test/project"
    assert entry.content == []


def test_extract_bash_command_from_assistant_entry():
    entry = _assistant(
        [
            {"type": "text", "text": "Let me check."},
            {
                "type": "tool_use",
                "id": "toolu_1",
                "name": "Bash",
                "input": {"command": "npm test", "description": "Run tests"},
            },
        ],
        timestamp="2025-06-07T12:00:00.000Z",
        cwd="/Users/test/project",
    )

    tool_use_id, command = parser.extract_bash_command(entry)

    assert tool_use_id == "toolu_1"
    assert command.command == "npm test"
    assert command.source == parser.SOURCE_BASH
    assert command.description == "Run tests"
    assert command.project_path == "/Users/test/project"
    assert command.timestamp == datetime(2025, 6, 7, 12, 0, tzinfo=timezone.utc)
    assert command.success is None


def test_extract_bash_command_takes_first_shell_block():
    entry = _assistant(
        [
            {"type": "tool_use", "id": "toolu_r", "name": "Read", "input": {"file_path": "/x"}},
            {"type": "tool_use", "id": "toolu_a", "name": "Bash", "input": {"command": "ls"}},
            {"type": "tool_use", "id": "toolu_b", "name": "Bash", "input": {"command": "pwd"}},
        ]
    )

    tool_use_id, command = parser.extract_bash_command(entry)

    assert tool_use_id == "toolu_a"
    assert command.command == "ls"


def test_extract_bash_command_ignores_other_tools_and_users():
    assert parser.extract_bash_command(_assistant([{"type": "tool_use", "name": "Edit", "input": {}}])) is None
    assert parser.extract_bash_command(_assistant([{"type": "text", "text": "hello"}])) is None
    assert parser.extract_bash_command(_user("! ls")) is None


def test_extract_bash_command_without_command_text_is_discarded():
    entry = _assistant([{"type": "tool_use", "id": "toolu_1", "name": "Bash", "input": {"description": "x"}}])
    assert parser.extract_bash_command(entry) is None

    entry = _assistant([{"type": "tool_use", "id": "toolu_2", "name": "Bash", "input": {"command": " \n "}}])
    assert parser.extract_bash_command(entry) is None


def test_missing_timestamp_defaults_to_decode_time():
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    entry = _assistant([{"type": "tool_use", "id": "t", "name": "Bash", "input": {"command": "ls"}}])

    _, command = parser.extract_bash_command(entry, now=now)

    assert command.timestamp == now


def test_extract_user_bang_command():
    entry = _user("! npm run build  ", timestamp="2025-06-07T12:00:00Z", cwd="/Users/test/project")

    command = parser.extract_user_command(entry)

    assert command.command == "npm run build"
    assert command.source == parser.SOURCE_USER
    assert command.success is True
    assert command.project_path == "/Users/test/project"


def test_extract_user_bang_command_on_later_line():
    command = parser.extract_user_command(_user("first line\n! git log -1\nmore"))

    assert command.command == "git log -1"


def test_extract_user_command_from_bash_input_tag():
    command = parser.extract_user_command(_user("<bash-input>npm test</bash-input>"))

    assert command.command == "npm test"


def test_extract_user_command_ignores_regular_text_and_blocks():
    assert parser.extract_user_command(_user("Regular message")) is None
    assert parser.extract_user_command(_user("!ls")) is None
    assert parser.extract_user_command(_user([{"type": "text", "text": "! npm test"}])) is None
    assert parser.extract_user_command(_assistant("! npm test")) is None

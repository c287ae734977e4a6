"""Show shell command history from Claude Code conversation logs."""

from .diagnostics import Diagnostic, echo_diagnostic
from .discovery import ProjectInfo, current_project, find_project, find_projects
from .merger import chronological_merge, merge_project_streams, sorted_batches
from .parser import (
    Command,
    RawEntry,
    SuccessCorrelator,
    decode_line,
    extract_bash_command,
    extract_user_command,
    normalize_command,
    stream_file,
    stream_project,
)

__all__ = [
    "Command",
    "Diagnostic",
    "ProjectInfo",
    "RawEntry",
    "SuccessCorrelator",
    "chronological_merge",
    "current_project",
    "decode_line",
    "echo_diagnostic",
    "extract_bash_command",
    "extract_user_command",
    "find_project",
    "find_projects",
    "merge_project_streams",
    "normalize_command",
    "sorted_batches",
    "stream_file",
    "stream_project",
]

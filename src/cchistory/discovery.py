"""Find Claude Code project directories and resolve project names to them.

Claude Code keeps one directory per working directory under
``~/.claude/projects``, named after the path with separators replaced:
``/Users/me/dev/app`` becomes ``-Users-me-dev-app``. The encoding loses
information (a dash in a folder name looks like a separator), so the real
path is read back from the ``cwd`` recorded in the transcripts.
"""

import os
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import click

from .diagnostics import ignore_diagnostic
from .parser import decode_line

_ENCODE_PATTERN = re.compile(r"[^A-Za-z0-9-]")
_PATH_SPLIT_PATTERN = re.compile(r"[\\/]")


@dataclass
class ProjectInfo:
    name: str
    actual_path: str
    claude_path: Path
    encoded_name: str
    last_modified: datetime


def encode_project_path(path) -> str:
    return _ENCODE_PATTERN.sub("-", str(path))


def decode_project_path(encoded_name: str) -> str:
    return encoded_name.replace("-", "/")


def _display_name(actual_path: str) -> str:
    parts = [part for part in _PATH_SPLIT_PATTERN.split(actual_path) if part]
    return parts[-1] if parts else actual_path


def extract_project_root(claude_path) -> str | None:
    """Return the first ``cwd`` recorded in the project's transcripts.

    The newest transcript is checked first.
    """
    claude_path = Path(claude_path)
    try:
        files = [p for p in claude_path.iterdir() if p.suffix == ".jsonl"]
        files.sort(key=lambda p: p.stat().st_mtime, reverse=True)
    except OSError:
        return None

    for path in files:
        try:
            with open(path, "rb") as f:
                for line in f:
                    entry = decode_line(line, report=ignore_diagnostic)
                    if entry is not None and entry.cwd:
                        return entry.cwd
        except OSError:
            continue
    return None


def _project_info(claude_path: Path, actual_path: str | None = None) -> ProjectInfo:
    stat = claude_path.stat()
    if actual_path is None:
        actual_path = extract_project_root(claude_path) or decode_project_path(claude_path.name)
    return ProjectInfo(
        name=_display_name(actual_path),
        actual_path=actual_path,
        claude_path=claude_path,
        encoded_name=claude_path.name,
        last_modified=datetime.fromtimestamp(stat.st_mtime),
    )


def find_projects(projects_dir) -> list[ProjectInfo]:
    """List every project directory, most recently modified first.

    A missing projects root means there are no projects; one that exists but
    cannot be listed is an error.
    """
    projects_dir = Path(projects_dir)
    if not projects_dir.is_dir():
        return []
    try:
        children = list(projects_dir.iterdir())
    except OSError as e:
        raise click.ClickException(f"Cannot access Claude projects directory: {e}")

    projects = []
    for child in children:
        try:
            if not child.is_dir():
                continue
            projects.append(_project_info(child))
        except OSError:
            # Vanished or unreadable directories are not projects
            continue

    projects.sort(key=lambda p: p.last_modified, reverse=True)
    return projects


def current_project(projects_dir, cwd=None) -> ProjectInfo | None:
    """Return the project recorded for ``cwd`` (default: the working directory)."""
    cwd = str(cwd) if cwd is not None else os.getcwd()
    claude_path = Path(projects_dir) / encode_project_path(cwd)
    if not claude_path.is_dir():
        return None
    try:
        return _project_info(claude_path, actual_path=cwd)
    except OSError:
        return None


def _shortest(matches: list[ProjectInfo]) -> ProjectInfo | None:
    if not matches:
        return None
    return min(matches, key=lambda p: len(p.actual_path))


def find_project(term: str, projects: list[ProjectInfo]) -> ProjectInfo | None:
    """Resolve a user-supplied name to a project.

    Exact matches win over path-component matches, which win over substring
    matches. Within the last two tiers the shortest path (the least nested
    project) is chosen.
    """
    if not term:
        return None

    for project in projects:
        if project.encoded_name == term:
            return project
    for project in projects:
        if project.name == term:
            return project
    stripped = term.rstrip("/\\") or term
    for project in projects:
        if project.actual_path.rstrip("/\\") == stripped:
            return project

    lowered = term.lower()
    component_matches = [
        project
        for project in projects
        if any(part.lower() == lowered for part in _PATH_SPLIT_PATTERN.split(project.actual_path))
    ]
    if component_matches:
        return _shortest(component_matches)

    partial_matches = [
        project
        for project in projects
        if lowered in project.actual_path.lower() or lowered in project.name.lower()
    ]
    return _shortest(partial_matches)

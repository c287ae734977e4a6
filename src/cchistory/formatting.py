"""Shell-history style rendering of commands and project lists."""

from pathlib import Path

from .discovery import ProjectInfo
from .parser import Command


def project_label(project_path: str | None) -> str:
    if not project_path:
        return ""
    parts = [part for part in project_path.replace("\\", "/").split("/") if part]
    return parts[-1] if parts else project_path


def format_command_line(command: Command, index: int, is_global: bool = False) -> str:
    """Format one history line: ``   1  git status``.

    In global view the project name is shown in a fixed-width column.
    """
    index_str = str(index).rjust(4)
    if is_global and command.project_path:
        prefix = f"[{project_label(command.project_path).ljust(15)}] "
        return f"{index_str}  {prefix}{command.command}"
    return f"{index_str}  {command.command}"


def format_project_list(projects: list[ProjectInfo], projects_dir: Path | None = None) -> str:
    if not projects:
        where = projects_dir if projects_dir is not None else "~/.claude/projects/"
        return f"No Claude projects found in {where}"
    return "\n".join(f"{project.name.ljust(20)} ({project.actual_path})" for project in projects)

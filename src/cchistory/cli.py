"""Command-line interface for cchistory."""

import io
import os
import sys
from pathlib import Path

import click
from click_default_group import DefaultGroup
import questionary

from .config import load_settings
from .diagnostics import echo_diagnostic, ignore_diagnostic
from .discovery import current_project, find_project, find_projects
from .formatting import format_command_line, format_project_list
from .merger import merge_project_streams
from .parser import stream_project


def _validate_count(ctx, param, value):
    if value is None:
        return None
    try:
        count = int(value)
    except ValueError:
        raise click.BadParameter("Count must be a positive number")
    if count < 1:
        raise click.BadParameter("Count must be a positive number")
    return count


def _silence_stdout():
    # Point stdout at devnull so the interpreter's final flush does not raise again
    try:
        fd = sys.stdout.fileno()
    except (AttributeError, io.UnsupportedOperation):
        # Captured stdout (no file descriptor) has nothing left to flush
        return
    devnull = os.open(os.devnull, os.O_WRONLY)
    os.dup2(devnull, fd)


def create_command_stream(
    root: Path,
    project_name: str | None,
    *,
    global_: bool = False,
    batch: bool = False,
    batch_size: int = 100,
    report=echo_diagnostic,
):
    """Pick the command stream to show.

    Returns ``(stream, is_global)``. A project name that matches nothing is
    an error; no name and no project for the working directory falls back to
    the global history.
    """
    if global_:
        projects = find_projects(root)
        stream = merge_project_streams(
            [p.claude_path for p in projects], batch=batch, batch_size=batch_size, report=report
        )
        return stream, True

    if project_name:
        project = find_project(project_name, find_projects(root))
        if project is None:
            raise click.ClickException(f"Project '{project_name}' not found")
    else:
        project = current_project(root)

    if project is None:
        click.echo("No project found. Showing global history from all projects.", err=True)
        return create_command_stream(root, None, global_=True, batch=batch, batch_size=batch_size, report=report)

    return stream_project(project.claude_path, report=report), False


def write_history(stream, *, is_global: bool = False, include_failed: bool = False, count: int | None = None) -> int:
    """Print commands from ``stream`` and return how many were printed.

    Stops pulling from the stream as soon as ``count`` lines are out.
    """
    printed = 0
    try:
        for command in stream:
            if not include_failed and command.success is False:
                continue
            printed += 1
            click.echo(format_command_line(command, printed, is_global))
            if count is not None and printed >= count:
                break
    finally:
        close = getattr(stream, "close", None)
        if close is not None:
            close()
    return printed


def _emit_history(ctx, stream, *, is_global, include_failed, count):
    try:
        printed = write_history(stream, is_global=is_global, include_failed=include_failed, count=count)
    except BrokenPipeError:
        # Downstream (e.g. `head`) closed the pipe; that is a normal way to stop
        _silence_stdout()
        ctx.exit(0)
    if printed == 0:
        ctx.exit(2)


@click.group(cls=DefaultGroup, default="history", default_if_no_args=True)
@click.version_option(None, "-v", "--version", package_name="cchistory")
def cli():
    """Show shell command history from Claude Code conversation logs."""
    pass


@cli.command("history")
@click.argument("project", required=False)
@click.option("-g", "--global", "global_", is_flag=True, help="Show history from all projects chronologically.")
@click.option("-l", "--list-projects", is_flag=True, help="List all available Claude projects.")
@click.option("-n", "--count", callback=_validate_count, help="Show at most this many commands.")
@click.option(
    "--include-failed",
    is_flag=True,
    help="Include failed command executions (default: only successful).",
)
@click.option(
    "--batch",
    is_flag=True,
    help="Read everything and sort once instead of streaming (global view only).",
)
@click.option("-q", "--quiet", is_flag=True, help="Do not report unreadable files or lines.")
@click.pass_context
def history_cmd(ctx, project, global_, list_projects, count, include_failed, batch, quiet):
    """Print the command history of PROJECT (default: the current directory)."""
    settings = load_settings()
    root = settings.projects_dir

    if list_projects:
        click.echo(format_project_list(find_projects(root), root))
        return

    stream, is_global = create_command_stream(
        root,
        project,
        global_=global_,
        batch=batch or settings.mode == "batch",
        batch_size=settings.batch_size,
        report=ignore_diagnostic if quiet else echo_diagnostic,
    )
    _emit_history(
        ctx,
        stream,
        is_global=is_global,
        include_failed=include_failed or settings.include_failed,
        count=count if count is not None else settings.count,
    )


@cli.command("projects")
def projects_cmd():
    """List all available Claude projects, most recent first."""
    root = load_settings().projects_dir
    click.echo(format_project_list(find_projects(root), root))


@cli.command("pick")
@click.option("-n", "--count", callback=_validate_count, help="Show at most this many commands.")
@click.option(
    "--include-failed",
    is_flag=True,
    help="Include failed command executions (default: only successful).",
)
@click.option("-q", "--quiet", is_flag=True, help="Do not report unreadable files or lines.")
@click.pass_context
def pick_cmd(ctx, count, include_failed, quiet):
    """Select a project interactively and print its history."""
    settings = load_settings()
    root = settings.projects_dir

    projects = find_projects(root)
    if not projects:
        click.echo(format_project_list(projects, root))
        return

    choices = []
    for project in projects:
        date_str = project.last_modified.strftime("%Y-%m-%d %H:%M")
        display = f"{date_str}  {project.name.ljust(20)} ({project.actual_path})"
        choices.append(questionary.Choice(title=display, value=project))

    selected = questionary.select(
        "Select a project:",
        choices=choices,
    ).ask()

    if selected is None:
        click.echo("No project selected.")
        return

    stream = stream_project(
        selected.claude_path,
        report=ignore_diagnostic if quiet else echo_diagnostic,
    )
    _emit_history(
        ctx,
        stream,
        is_global=False,
        include_failed=include_failed or settings.include_failed,
        count=count if count is not None else settings.count,
    )


def main():
    cli()

"""Diagnostic channel for data problems that are skipped rather than raised."""

from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import click

DECODE = "decode"
READ = "read"
MERGE = "merge"


@dataclass(frozen=True)
class Diagnostic:
    kind: str
    message: str
    path: Path | None = None
    line_number: int | None = None
    error_class: str | None = None


Reporter = Callable[[Diagnostic], None]


def echo_diagnostic(diagnostic: Diagnostic) -> None:
    """Default sink: write the message to stderr."""
    click.echo(diagnostic.message, err=True)


def ignore_diagnostic(diagnostic: Diagnostic) -> None:
    pass

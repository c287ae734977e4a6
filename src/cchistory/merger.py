"""Merge independently ordered command streams into one chronological stream."""

from typing import Iterable, Iterator

from .diagnostics import MERGE, Diagnostic, Reporter, echo_diagnostic
from .parser import Command, stream_project

DEFAULT_BATCH_SIZE = 100


class StreamCursor:
    """One source stream plus the single command read ahead from it."""

    __slots__ = ("source", "index", "buffer", "exhausted")

    def __init__(self, source: Iterable[Command], index: int):
        self.source = iter(source)
        self.index = index
        self.buffer: Command | None = None
        self.exhausted = False

    def advance(self, report: Reporter, action: str = "reading from") -> None:
        """Replace the buffered command with the next one from the source.

        A source that raises is treated as finished; the error is reported.
        """
        try:
            self.buffer = next(self.source)
        except StopIteration:
            self.buffer = None
            self.exhausted = True
        except Exception as e:
            self.buffer = None
            self.exhausted = True
            report(
                Diagnostic(
                    kind=MERGE,
                    message=f"Error {action} stream {self.index}: {e}",
                    error_class=type(e).__name__,
                )
            )


def _find_earliest(cursors: list[StreamCursor]) -> StreamCursor | None:
    # Strict comparison: on equal timestamps the cursor listed first wins
    earliest = None
    for cursor in cursors:
        if cursor.exhausted or cursor.buffer is None:
            continue
        if earliest is None or cursor.buffer.timestamp < earliest.buffer.timestamp:
            earliest = cursor
    return earliest


def chronological_merge(
    streams: Iterable[Iterable[Command]],
    *,
    report: Reporter = echo_diagnostic,
) -> Iterator[Command]:
    """Merge timestamp-ordered streams, holding one command per stream.

    Memory stays proportional to the number of streams, and a consumer that
    stops after K commands causes at most K plus one pull per stream. Commands
    with equal timestamps from different streams come out in the order the
    streams were given; that is the only tie-break.
    """
    streams = list(streams)
    if not streams:
        return

    if len(streams) == 1:
        try:
            yield from streams[0]
        except Exception as e:
            report(
                Diagnostic(
                    kind=MERGE,
                    message=f"Error reading from stream 0: {e}",
                    error_class=type(e).__name__,
                )
            )
        return

    cursors = [StreamCursor(stream, index) for index, stream in enumerate(streams)]
    for cursor in cursors:
        cursor.advance(report, action="initializing")

    while True:
        cursor = _find_earliest(cursors)
        if cursor is None:
            return
        command = cursor.buffer
        yield command
        cursor.advance(report)


def sorted_batches(
    streams: Iterable[Iterable[Command]],
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    report: Reporter = echo_diagnostic,
) -> Iterator[Command]:
    """Read every stream to the end, sort once, then yield in batches.

    Only for callers that would materialize the whole history anyway; unlike
    :func:`chronological_merge` this reads everything before the first yield.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be a positive integer")

    commands: list[Command] = []
    for index, stream in enumerate(streams):
        try:
            for command in stream:
                commands.append(command)
        except Exception as e:
            report(
                Diagnostic(
                    kind=MERGE,
                    message=f"Error reading stream {index}: {e}",
                    error_class=type(e).__name__,
                )
            )

    commands.sort(key=lambda command: command.timestamp)
    for start in range(0, len(commands), batch_size):
        yield from commands[start : start + batch_size]


def merge_project_streams(
    project_dirs,
    *,
    batch: bool = False,
    batch_size: int = DEFAULT_BATCH_SIZE,
    report: Reporter = echo_diagnostic,
) -> Iterator[Command]:
    """Chronological history across several project directories."""
    streams = [stream_project(project_dir, report=report) for project_dir in project_dirs]
    if batch:
        return sorted_batches(streams, batch_size=batch_size, report=report)
    return chronological_merge(streams, report=report)

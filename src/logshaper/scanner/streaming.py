"""Streaming scanner: one input stream, one reader thread, two bounded channels.

Lifecycle::

    CREATED --open_file/open_stream--> OPENED --read--> READING --> DRAINED
       |                                  |
       +------------- shutdown -----------+--> SHUTDOWN

``read`` starts a single daemon thread that is the only writer to both
channels.  Lines arrive on the data channel in file order; per-line problems
(undecodable bytes) go to the error channel and reading continues.  At end of
stream the worker closes the data channel, closes the file, moves it to the
processed directory when one is configured, then closes the error channel,
so a failed move is only visible to callers that drain the error channel to
the end.

Usage::

    scanner = StreamingScanner(ruleset)
    scanner.open_file("app.log")
    data, errors = scanner.read(100, 100)
    for line in consume(data, errors, on_error=lambda e: log.error("%s", e)):
        ...

Iterating ``data`` alone also works, as long as the error channel is
drained afterwards and cannot fill up before the data runs out.
"""
from __future__ import annotations

import enum
import logging
import queue
import shutil
import threading
from pathlib import Path
from typing import IO, Callable, Iterable, Iterator

from ..errors import LineDecodeError, ProcessedFileMoveError, ScannerStateError
from ..hashing.reducer import HashFormat, HashReducer
from ..hashing.state import HashState
from ..rules.ruleset import RuleSet
from ..transform.line_transformer import LineTransformer
from .channel import Channel, ChannelClosed

logger = logging.getLogger(__name__)


class ScannerState(enum.Enum):
    CREATED = "created"
    OPENED = "opened"
    READING = "reading"
    DRAINED = "drained"
    SHUTDOWN = "shutdown"


class StreamingScanner:
    """Reads one input stream and carries the per-stream pipeline objects.

    Attributes:
        ruleset:      Compiled rules for this input type (shared, read-only).
        transformer:  Filter / replace / split / extract for this ruleset.
        hash_state:   Hashes and counts for this stream only.
        reducer:      Hash-column reducer writing into ``hash_state``.
    """

    def __init__(
        self,
        ruleset: RuleSet,
        hash_format: HashFormat = HashFormat.STRING,
        encoding: str = "utf-8",
    ) -> None:
        self.ruleset = ruleset
        self.transformer = LineTransformer(ruleset)
        self.hash_state = HashState()
        self.reducer = HashReducer(ruleset, self.hash_state, hash_format)
        self.encoding = encoding

        self._state = ScannerState.CREATED
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._stream: Iterable[bytes] | Iterable[str] | None = None
        self._file: IO[bytes] | None = None
        self._path: Path | None = None
        self._worker: threading.Thread | None = None

    @property
    def state(self) -> ScannerState:
        return self._state

    @property
    def path(self) -> Path | None:
        """Path of the input file, or None for a caller-supplied stream."""
        return self._path

    # ------------------------------------------------------------------
    # Opening
    # ------------------------------------------------------------------

    def open_file(self, path: str | Path) -> None:
        """Open ``path`` for reading.

        Raises:
            OSError: the file cannot be opened.
            ScannerStateError: the scanner is not freshly created.
        """
        with self._lock:
            self._require(ScannerState.CREATED, "open_file")
            path = Path(path)
            self._file = open(path, "rb")
            self._stream = self._file
            self._path = path
            self._state = ScannerState.OPENED
        logger.debug("Opened %s", path)

    def open_stream(self, stream: Iterable[bytes] | Iterable[str]) -> None:
        """Attach an already-open binary or text stream (or any iterable of lines).

        The scanner never closes a stream it did not open, and never moves
        anything when reading from a stream.
        """
        with self._lock:
            self._require(ScannerState.CREATED, "open_stream")
            self._stream = stream
            self._state = ScannerState.OPENED

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def read(
        self, data_buffer: int = 100, error_buffer: int = 100
    ) -> tuple[Channel[str], Channel[Exception]]:
        """Start the reader thread and return ``(data, errors)`` channels.

        Raises:
            ScannerStateError: not opened, or ``read`` was already called.
        """
        with self._lock:
            self._require(ScannerState.OPENED, "read")
            self._state = ScannerState.READING
            data: Channel[str] = Channel(data_buffer, name="data")
            errors: Channel[Exception] = Channel(error_buffer, name="errors")
            name = f"scanner-{self._path.name}" if self._path else "scanner-stream"
            self._worker = threading.Thread(
                target=self._run, args=(data, errors), name=name, daemon=True
            )
            self._worker.start()
        return data, errors

    def _run(self, data: Channel[str], errors: Channel[Exception]) -> None:
        stop = self._stop
        lines = 0
        try:
            for number, raw in enumerate(self._stream or (), start=1):
                if stop.is_set():
                    break
                try:
                    line = self._decode(raw, number)
                except LineDecodeError as exc:
                    if not errors.put(exc, stop):
                        break
                    continue
                if not data.put(line, stop):
                    break
                lines += 1
        except (OSError, ValueError) as exc:
            # ValueError: the file was closed underneath us
            errors.put(exc, stop)
        finally:
            data.close()
            self.shutdown()
            if not stop.is_set():
                self._relocate(errors)
            self._state = ScannerState.DRAINED
            errors.close()
            logger.debug("Reader for %s finished after %d lines", self._path or "stream", lines)

    def _decode(self, raw: bytes | str, number: int) -> str:
        if isinstance(raw, bytes):
            try:
                line = raw.decode(self.encoding)
            except UnicodeDecodeError as exc:
                raise LineDecodeError(number, exc) from exc
        else:
            line = raw
        if line.endswith("\n"):
            line = line[:-1]
        if line.endswith("\r"):
            line = line[:-1]
        return line

    def _relocate(self, errors: Channel[Exception]) -> None:
        directory = self.ruleset.processed_directory
        if directory is None or self._path is None:
            return
        destination = directory / self._path.name
        try:
            shutil.move(str(self._path), str(destination))
        except OSError as exc:
            errors.put(
                ProcessedFileMoveError(f"cannot move {self._path} to {destination}: {exc}"),
                self._stop,
            )
            return
        logger.info("Moved processed file %s to %s", self._path, destination)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Ask the reader thread to stop early.

        The worker closes both channels and the file but does not move it.
        Lines already queued remain readable.
        """
        self._stop.set()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the reader thread; True when it has finished."""
        if self._worker is None:
            return True
        self._worker.join(timeout)
        return not self._worker.is_alive()

    def shutdown(self) -> None:
        """Close the input file if the scanner opened it.  Idempotent.

        Called automatically by the reader thread at end of stream; call it
        yourself when a scanner is opened but never read.
        """
        with self._lock:
            if self._file is not None:
                self._file.close()
                self._file = None
            if self._state in (ScannerState.CREATED, ScannerState.OPENED):
                self._state = ScannerState.SHUTDOWN

    def __enter__(self) -> "StreamingScanner":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    def _require(self, expected: ScannerState, action: str) -> None:
        if self._state is not expected:
            raise ScannerStateError(
                f"cannot {action} a scanner in state {self._state.value!r}"
            )

    def __repr__(self) -> str:
        return f"StreamingScanner(path={self._path}, state={self._state.value})"


def consume(
    data: Channel[str],
    errors: Channel[Exception],
    on_error: Callable[[Exception], None],
    poll_interval: float = 0.05,
) -> Iterator[str]:
    """Yield every line from ``data`` while servicing ``errors``.

    Errors are handed to ``on_error`` as soon as they are seen, so a burst of
    errors can never fill the error channel and stall the reader while the
    consumer waits for data.  Returns once both channels are closed; errors
    reported after the last line (a failed move) are included.
    """
    while True:
        for err in errors.drain_nowait():
            on_error(err)
        try:
            line = data.get(timeout=poll_interval)
        except queue.Empty:
            continue
        except ChannelClosed:
            break
        yield line
    for err in errors:
        on_error(err)

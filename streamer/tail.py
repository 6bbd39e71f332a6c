"""LineSource: follows a single file and yields each newly appended line."""

import logging
import os
import threading
import time

from streamer.errors import TailError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class LineSource:
    """Iterable over the lines appended to a file after construction.

    Handles:
    - Partial writes (a line is only yielded once its newline arrives)
    - Overlong lines (beyond *max_line_bytes* they are discarded unbuffered
      and reported through *on_oversize*)
    - Log rotation (inode change: drain the old file, then read the new one
      from its beginning)
    - File truncation (seek back to start)
    - Removal without replacement (TailError after *missing_timeout*)

    Iteration blocks the calling thread while the file is idle. It ends
    normally only when *shutdown_event* is set. Every I/O failure surfaces
    as TailError.
    """

    def __init__(
        self,
        path: str,
        poll_interval: float = 0.5,
        missing_timeout: float = 30.0,
        notifier=None,
        shutdown_event: threading.Event | None = None,
        max_line_bytes: int | None = None,
        on_oversize=None,
    ):
        self._path = path
        self._poll_interval = poll_interval
        self._missing_timeout = missing_timeout
        self._notifier = notifier
        self._shutdown = shutdown_event or threading.Event()
        self._max_line_bytes = max_line_bytes
        self._on_oversize = on_oversize
        self._wake = threading.Event()
        self._file = None
        self._ident: tuple[int, int] | None = None
        self._partial = bytearray()
        self._overflow = 0   # bytes discarded from the current overlong line
        self._missing_since: float | None = None

        self._open_file(seek_end=True)
        if self._notifier is not None:
            try:
                self._notifier.watch(path, self._wake)
            except OSError as e:
                self._file.close()
                self._file = None
                raise TailError(f"cannot watch {path}: {e}") from e

    @property
    def path(self) -> str:
        return self._path

    def __iter__(self):
        try:
            while not self._shutdown.is_set():
                chunk = self._read()
                if chunk:
                    yield from self._split(chunk)
                    continue

                rotated = self._check_rotation()
                if rotated is not None:
                    yield from rotated
                    continue

                if self._check_truncation():
                    continue

                self._wait()
        finally:
            self.close()

    def close(self):
        """Release the file handle and the change notification."""
        if self._notifier is not None:
            self._notifier.unwatch(self._path, self._wake)
        if self._file:
            self._file.close()
            self._file = None

    def _open_file(self, seek_end: bool):
        try:
            fh = open(self._path, "rb")
        except OSError as e:
            raise TailError(f"cannot open {self._path}: {e}") from e
        try:
            st = os.fstat(fh.fileno())
            if seek_end:
                fh.seek(0, os.SEEK_END)
        except OSError as e:
            fh.close()
            raise TailError(f"cannot position {self._path}: {e}") from e
        self._file = fh
        self._ident = (st.st_dev, st.st_ino)
        logger.debug("Opened %s (inode=%d, offset=%d)", self._path, st.st_ino, fh.tell())

    def _read(self, size: int = CHUNK_SIZE) -> bytes:
        try:
            return self._file.read(size)
        except OSError as e:
            raise TailError(f"cannot read {self._path}: {e}") from e

    def _split(self, chunk: bytes):
        """Yield the lines completed by *chunk*; only *chunk* is scanned for newlines."""
        start = 0
        while True:
            nl = chunk.find(b"\n", start)
            if nl < 0:
                break
            piece = chunk[start:nl]
            start = nl + 1
            if self._overflow:
                self._drop_line(self._overflow + len(piece))
                continue
            if self._partial:
                self._partial += piece
                raw = bytes(self._partial)
                self._partial.clear()
            else:
                raw = piece
            if self._too_long(len(raw)):
                self._drop_line(len(raw))
                continue
            yield _decode(raw)
        self._buffer(chunk[start:])

    def _buffer(self, rest: bytes):
        if not rest:
            return
        if self._overflow:
            self._overflow += len(rest)
        elif self._too_long(len(self._partial) + len(rest)):
            self._overflow = len(self._partial) + len(rest)
            self._partial.clear()
        else:
            self._partial += rest

    def _flush_partial(self) -> list[str]:
        """Emit whatever unterminated data is buffered, as a final line."""
        lines = []
        if self._overflow:
            self._drop_line(self._overflow)
        elif self._partial:
            lines.append(_decode(bytes(self._partial)))
        self._reset_partial()
        return lines

    def _reset_partial(self):
        self._partial.clear()
        self._overflow = 0

    def _too_long(self, size: int) -> bool:
        return self._max_line_bytes is not None and size > self._max_line_bytes

    def _drop_line(self, size: int):
        self._overflow = 0
        logger.warning(
            "Discarding %d byte line from %s (limit %d)", size, self._path, self._max_line_bytes
        )
        if self._on_oversize is not None:
            self._on_oversize(size)

    def _wait(self):
        """Block until the notifier reports a change or the poll interval elapses."""
        if self._wake.wait(self._poll_interval):
            self._wake.clear()

    def _check_rotation(self) -> list[str] | None:
        """Reopen the path if it now names a different file.

        Returns the lines drained from the old file, or None if not rotated.
        """
        try:
            st = os.stat(self._path)
        except FileNotFoundError:
            self._note_missing()
            return None
        except OSError as e:
            raise TailError(f"cannot stat {self._path}: {e}") from e

        if self._missing_since is not None:
            logger.info("%s reappeared", self._path)
            self._missing_since = None

        if (st.st_dev, st.st_ino) == self._ident:
            return None

        logger.info("File rotation detected for %s", self._path)
        lines = []
        while chunk := self._read():
            lines.extend(self._split(chunk))
        lines.extend(self._flush_partial())
        self._file.close()
        self._open_file(seek_end=False)
        return lines

    def _check_truncation(self) -> bool:
        try:
            size = os.fstat(self._file.fileno()).st_size
            pos = self._file.tell()
            if pos <= size:
                return False
            logger.info("File truncation detected for %s", self._path)
            self._file.seek(0)
        except OSError as e:
            raise TailError(f"cannot stat {self._path}: {e}") from e
        self._reset_partial()
        return True

    def _note_missing(self):
        now = time.monotonic()
        if self._missing_since is None:
            logger.info("%s is missing, waiting for a replacement", self._path)
            self._missing_since = now
        elif now - self._missing_since > self._missing_timeout:
            raise TailError(
                f"{self._path} was removed and not replaced within {self._missing_timeout:.1f}s"
            )


def _decode(raw: bytes) -> str:
    if raw.endswith(b"\r"):
        raw = raw[:-1]
    return raw.decode("utf-8", errors="replace")

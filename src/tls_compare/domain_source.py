"""
Domain source: a lazy reader over a line-delimited hostname list.

Lines are split on ``\\n`` only and yielded in file order with their line
terminator removed and no other filtering; a blank line is yielded as an
empty hostname. The file is read as bytes and each line decoded on its
own, so bytes that are not valid UTF-8 are kept as ``\\xNN`` escapes and
the line still becomes a (failing) probe target.
"""

from pathlib import Path
from typing import BinaryIO, Iterator, Optional

from .exceptions import DomainSourceError


ENCODING = "utf-8"
DECODE_ERRORS = "backslashreplace"


class DomainSource:
    """
    Iterate hostnames from a file or an already open binary stream.

    The sequence is consumed once: iterating a second time yields nothing
    more than what is left in the underlying stream. Use as a context
    manager (or call ``close``) to release the file.
    """

    def __init__(self, path: Optional[Path] = None, stream: Optional[BinaryIO] = None) -> None:
        if (path is None) == (stream is None):
            raise ValueError("Exactly one of path or stream must be given")
        self._path = path
        self._stream = stream
        self._owns_stream = False
        self._count = 0

    def open(self) -> "DomainSource":
        """
        Open the backing file.

        Raises:
            DomainSourceError: If the file cannot be opened
        """
        if self._stream is not None:
            return self
        try:
            self._stream = open(self._path, "rb")
        except OSError as e:
            raise DomainSourceError(
                code="domains_unreadable",
                message=f"unable to open file: {self._path}",
                details={"path": str(self._path), "error": str(e)},
            ) from e
        self._owns_stream = True
        return self

    def close(self) -> None:
        if self._owns_stream and self._stream is not None:
            self._stream.close()
            self._stream = None
            self._owns_stream = False

    def __enter__(self) -> "DomainSource":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def count(self) -> int:
        """Number of hostnames yielded so far."""
        return self._count

    def __iter__(self) -> Iterator[str]:
        if self._stream is None:
            self.open()
        # Binary readline splits on b"\n" only; a lone b"\r" stays in the line
        for raw in self._stream:
            self._count += 1
            yield decode_line(strip_line_ending(raw))


def strip_line_ending(line: bytes) -> bytes:
    """Remove one trailing ``\\n`` or ``\\r\\n``."""
    if line.endswith(b"\n"):
        line = line[:-1]
        if line.endswith(b"\r"):
            line = line[:-1]
    return line


def decode_line(line: bytes) -> str:
    """Decode one line as UTF-8, escaping undecodable bytes."""
    return line.decode(ENCODING, errors=DECODE_ERRORS)

"""
Result sink: the single consumer of comparison results.

The sink owns the output CSV file and the live mirror stream. Each result
is written as one CSV row and flushed immediately, then echoed as an
abbreviated line (no address, no timestamp) to the mirror.
"""

import asyncio
import csv
import sys
import time
from pathlib import Path
from typing import Optional, Sequence, TextIO

from .exceptions import OutputStoreError
from .models import ComparisonResult, RunSummary


# Results queue terminator
END_OF_RESULTS = None


def output_filename(started_at: Optional[int] = None) -> str:
    """``comparison-<unix seconds>.csv`` for a run started at ``started_at``."""
    if started_at is None:
        started_at = int(time.time())
    return f"comparison-{started_at}.csv"


class ResultSink:
    """
    CSV writer and live mirror for comparison results.

    Use as a context manager: the output file is created on entry (it must
    not already exist) and flushed and closed on exit, whatever the exit
    path. Entering a sink that is already open keeps the open file.
    """

    def __init__(
        self,
        path: Path,
        columns: Sequence[str],
        mirror: Optional[TextIO] = None,
    ) -> None:
        self._path = Path(path)
        self._columns = list(columns)
        self._mirror = mirror if mirror is not None else sys.stdout
        self._file: Optional[TextIO] = None
        self._writer = None
        self.summary = RunSummary(output_path=str(self._path))

    @property
    def path(self) -> Path:
        return self._path

    @property
    def header(self) -> list[str]:
        return (
            ["server_name", "addr", "err_flags"]
            + self._columns
            + ["ts"]
        )

    def open(self) -> "ResultSink":
        """
        Create the output file and write the header row.

        Raises:
            OutputStoreError: If the file exists or cannot be created
            RuntimeError: If this sink is already open
        """
        if self.is_open:
            raise RuntimeError(f"ResultSink for {self._path} is already open")
        try:
            self._file = open(self._path, "x", encoding="utf-8", newline="")
        except OSError as e:
            raise OutputStoreError(
                code="output_unwritable",
                message=f"unable to open csv file: {self._path}",
                details={"path": str(self._path), "error": str(e)},
            ) from e

        self._writer = csv.writer(self._file)
        self._writer.writerow(self.header)
        self._file.flush()
        return self

    def close(self) -> None:
        if self._file is not None:
            try:
                self._file.flush()
            finally:
                self._file.close()
                self._file = None
                self._writer = None

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def __enter__(self) -> "ResultSink":
        if self.is_open:
            return self
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def row_for(self, result: ComparisonResult) -> list[str]:
        return (
            [result.server_name, result.addr, str(result.err_flags)]
            + [outcome.error_text for outcome in result.outcomes]
            + [str(result.timestamp)]
        )

    def mirror_line_for(self, result: ComparisonResult) -> str:
        fields = [result.server_name, str(result.err_flags)]
        fields.extend(outcome.error_text for outcome in result.outcomes)
        return ",".join(fields)

    def write(self, result: ComparisonResult) -> None:
        """Persist one result, flush it, then mirror it."""
        if self._writer is None:
            raise RuntimeError("ResultSink is not open")
        if len(result.outcomes) != len(self._columns):
            raise ValueError(
                f"Result for {result.server_name!r} has {len(result.outcomes)} "
                f"outcomes, expected {len(self._columns)}"
            )

        self._writer.writerow(self.row_for(result))
        self._file.flush()

        self._mirror.write(self.mirror_line_for(result) + "\n")
        self._mirror.flush()

        self.summary.record(result)

    async def consume(self, results: asyncio.Queue) -> RunSummary:
        """Drain ``results`` in arrival order until ``END_OF_RESULTS``."""
        while True:
            result = await results.get()
            if result is END_OF_RESULTS:
                return self.summary
            self.write(result)

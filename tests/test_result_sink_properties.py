"""
Property-based tests for the result sink.

Verifies the CSV layout, per-row persistence and the live mirror.
"""

import asyncio
import csv
import io
import tempfile
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from tls_compare.enums import ErrorKind
from tls_compare.exceptions import OutputStoreError
from tls_compare.models import ComparisonResult, ProbeOutcome
from tls_compare.result_sink import END_OF_RESULTS, ResultSink, output_filename
from tls_compare.strategies import create_default_registry


STRATEGY_NAMES = ["tls", "utls", "utlslight"]
COLUMNS = create_default_registry().columns
HEADER = ["server_name", "addr", "err_flags", "err_tls", "err_utls", "err_utlslight", "ts"]


@st.composite
def result_strategy(draw) -> ComparisonResult:
    """Generate results with arbitrary per-strategy success or failure."""
    server_name = draw(st.text(alphabet="abcdefghijklmnopqrstuvwxyz.-", min_size=1, max_size=30))
    outcomes = []
    for name in STRATEGY_NAMES:
        if draw(st.booleans()):
            outcomes.append(ProbeOutcome.success(name, "h2"))
        else:
            message = draw(st.text(alphabet="abcdefghijklmnopqrstuvwxyz :,\"", min_size=1, max_size=40))
            outcomes.append(ProbeOutcome.failure(name, ErrorKind.HANDSHAKE, message))
    return ComparisonResult(
        server_name=server_name,
        address="192.0.2.1",
        outcomes=tuple(outcomes),
        timestamp=draw(st.integers(min_value=1_600_000_000, max_value=2_000_000_000)),
    )


def read_rows(path: Path) -> list[list[str]]:
    with open(path, "r", encoding="utf-8", newline="") as f:
        return list(csv.reader(f))


class TestCSVLayoutProperty:
    """Property-based tests for the output file."""

    @given(results=st.lists(result_strategy(), min_size=0, max_size=15))
    @settings(max_examples=50)
    def test_rows_match_results(self, results: list[ComparisonResult]) -> None:
        """
        Property: the file holds the header plus one row per result, in write order.
        """
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = Path(tmp_dir) / output_filename(1700000000)
            mirror = io.StringIO()

            with ResultSink(path, COLUMNS, mirror=mirror) as sink:
                for result in results:
                    sink.write(result)

            rows = read_rows(path)

        assert rows[0] == HEADER
        assert len(rows) == len(results) + 1
        for row, result in zip(rows[1:], results):
            assert row[0] == result.server_name
            assert row[1] == "192.0.2.1:443"
            assert int(row[2]) == result.err_flags
            assert row[3:6] == [o.error_text for o in result.outcomes]
            assert row[6] == str(result.timestamp)
        assert sink.summary.rows_written == len(results)

    def test_row_is_flushed_before_close(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = Path(tmp_dir) / "out.csv"
            sink = ResultSink(path, COLUMNS, mirror=io.StringIO()).open()
            sink.write(ComparisonResult.uniform_failure("a.example", STRATEGY_NAMES, ErrorKind.DNS_RESOLUTION))

            rows = read_rows(path)
            sink.close()

        assert rows[1] == ["a.example", "", "7"] + ["unable to lookup IP"] * 3 + [rows[1][6]]

    def test_output_filename(self) -> None:
        assert output_filename(1700000000) == "comparison-1700000000.csv"
        assert output_filename().startswith("comparison-")


class TestMirrorProperty:
    """Tests for the live stdout mirror."""

    def test_mirror_omits_address_and_timestamp(self) -> None:
        result = ComparisonResult(
            server_name="example.com",
            address="192.0.2.1",
            outcomes=(
                ProbeOutcome.success("tls", "h2"),
                ProbeOutcome.failure("utls", ErrorKind.HANDSHAKE, "remote error"),
                ProbeOutcome.success("utlslight", "h2"),
            ),
        )
        with tempfile.TemporaryDirectory() as tmp_dir:
            mirror = io.StringIO()
            with ResultSink(Path(tmp_dir) / "out.csv", COLUMNS, mirror=mirror) as sink:
                sink.write(result)

        assert mirror.getvalue() == "example.com,2,,remote error,\n"


class TestSinkErrors:
    """Tests for sink failure modes."""

    def test_existing_file_is_not_overwritten(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = Path(tmp_dir) / "comparison-1.csv"
            path.write_text("keep me\n", encoding="utf-8")

            with pytest.raises(OutputStoreError) as exc_info:
                ResultSink(path, COLUMNS).open()

            assert path.read_text(encoding="utf-8") == "keep me\n"
        assert exc_info.value.message.startswith("unable to open csv file")

    def test_wrong_outcome_count_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            with ResultSink(Path(tmp_dir) / "out.csv", COLUMNS, mirror=io.StringIO()) as sink:
                with pytest.raises(ValueError):
                    sink.write(ComparisonResult.uniform_failure("a", ["tls"], ErrorKind.TIMEOUT))

    def test_entering_an_open_sink_keeps_the_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = Path(tmp_dir) / "out.csv"
            sink = ResultSink(path, COLUMNS, mirror=io.StringIO()).open()

            with sink:
                sink.write(ComparisonResult.uniform_failure("a.example", STRATEGY_NAMES, ErrorKind.TIMEOUT))

            assert not sink.is_open
            rows = read_rows(path)

        assert rows[0] == HEADER
        assert [row[0] for row in rows[1:]] == ["a.example"]

    def test_second_open_rejected(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            sink = ResultSink(Path(tmp_dir) / "out.csv", COLUMNS, mirror=io.StringIO()).open()
            try:
                with pytest.raises(RuntimeError):
                    sink.open()
            finally:
                sink.close()

    def test_write_requires_open(self) -> None:
        sink = ResultSink(Path("unused.csv"), COLUMNS, mirror=io.StringIO())

        with pytest.raises(RuntimeError):
            sink.write(ComparisonResult.uniform_failure("a", STRATEGY_NAMES, ErrorKind.TIMEOUT))


class TestConsumeProperty:
    """Tests for draining the results queue."""

    def test_consume_until_end_marker(self) -> None:
        async def scenario(sink: ResultSink):
            queue: asyncio.Queue = asyncio.Queue()
            for name in ("a.example", "b.example"):
                await queue.put(ComparisonResult.uniform_failure(name, STRATEGY_NAMES, ErrorKind.TIMEOUT))
            await queue.put(END_OF_RESULTS)
            return await sink.consume(queue)

        with tempfile.TemporaryDirectory() as tmp_dir:
            path = Path(tmp_dir) / "out.csv"
            with ResultSink(path, COLUMNS, mirror=io.StringIO()) as sink:
                summary = asyncio.run(scenario(sink))
            rows = read_rows(path)

        assert summary.rows_written == 2
        assert summary.timeouts == 2
        assert [row[0] for row in rows[1:]] == ["a.example", "b.example"]

"""
Worker pool: bounded parallel probing with a per-domain deadline.

A producer feeds hostnames into a bounded work queue; ``parallelism``
workers each take one hostname at a time and race the probe engine against
the deadline. A probe that misses its deadline is cancelled (the
cancellation reaches the pending dial, handshake or request and its
streams are closed) and a timeout result is emitted in its place.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Optional, Sequence

from .audit_logger import AuditLogger
from .enums import ErrorKind, LogLevel
from .models import ComparisonResult


ProbeFunc = Callable[[str], Awaitable[ComparisonResult]]

# Queue terminator; one is queued per consumer
_DONE = object()


@dataclass
class PoolStats:
    """Counters for one pool run."""

    submitted: int = 0
    completed: int = 0
    timed_out: int = 0
    max_in_flight: int = 0


class WorkerPool:
    """
    Fan hostnames out over a fixed number of workers.

    With ``parallelism == 1`` hostnames are probed strictly one after
    another and results are emitted in input order.
    """

    def __init__(
        self,
        probe: ProbeFunc,
        strategy_names: Sequence[str],
        parallelism: int = 100,
        timeout: float = 20.0,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        if parallelism < 1:
            raise ValueError(f"parallelism must be >= 1, got {parallelism}")
        if timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {timeout}")

        self._probe = probe
        self._strategy_names = list(strategy_names)
        self._parallelism = parallelism
        self._timeout = timeout
        self._logger = logger
        self._in_flight = 0
        self.stats = PoolStats()

    @property
    def parallelism(self) -> int:
        return self._parallelism

    @property
    def timeout(self) -> float:
        return self._timeout

    async def run(self, domains: Iterable[str], results: asyncio.Queue) -> PoolStats:
        """
        Probe every hostname in ``domains`` and put each result on ``results``.

        Returns once every worker has drained the work queue and exited.
        The results queue is not closed here; that is the caller's job once
        this returns.
        """
        work: asyncio.Queue = asyncio.Queue(maxsize=self._parallelism)
        self.stats = PoolStats()

        workers = [
            asyncio.create_task(self._worker(work, results), name=f"worker-{i}")
            for i in range(self._parallelism)
        ]
        producer = asyncio.create_task(self._produce(domains, work), name="producer")

        try:
            # Any worker failure ends the run
            await asyncio.gather(producer, *workers)
        except BaseException:
            producer.cancel()
            for worker in workers:
                worker.cancel()
            await asyncio.gather(producer, *workers, return_exceptions=True)
            raise

        return self.stats

    async def _produce(self, domains: Iterable[str], work: asyncio.Queue) -> None:
        for server_name in domains:
            self.stats.submitted += 1
            await work.put(server_name)
        for _ in range(self._parallelism):
            await work.put(_DONE)

    async def _worker(self, work: asyncio.Queue, results: asyncio.Queue) -> None:
        while True:
            server_name = await work.get()
            if server_name is _DONE:
                return
            result = await self.probe_with_deadline(server_name)
            await results.put(result)

    async def probe_with_deadline(self, server_name: str) -> ComparisonResult:
        """Run one probe; on deadline expiry cancel it and return a timeout result."""
        self._in_flight += 1
        self.stats.max_in_flight = max(self.stats.max_in_flight, self._in_flight)
        started = time.monotonic()
        try:
            result = await asyncio.wait_for(self._probe(server_name), timeout=self._timeout)
            self.stats.completed += 1
            self._log(
                LogLevel.DEBUG,
                "Probe completed",
                {
                    "server_name": server_name,
                    "err_flags": result.err_flags,
                    "duration_s": round(time.monotonic() - started, 3),
                },
            )
            return result
        except asyncio.TimeoutError:
            self.stats.timed_out += 1
            self._log(
                LogLevel.WARN,
                "Probe deadline exceeded",
                {"server_name": server_name, "timeout_s": self._timeout},
            )
            return ComparisonResult.uniform_failure(
                server_name, self._strategy_names, ErrorKind.TIMEOUT
            )
        finally:
            self._in_flight -= 1

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, "WorkerPool", message, data)

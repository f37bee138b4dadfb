"""
Run orchestrator for the TLS stack comparison tool.

Wires the pipeline together: the domain source feeds the worker pool, the
pool pushes results onto a bounded queue, and the result sink drains that
queue into the output file. Two join barriers end a run: first every
worker exits, then the results queue is closed and the sink drains it.
Only failing to open the domain list or to create the output file aborts
a run.
"""

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional, TextIO

import httpcore

from .audit_logger import AuditLogger
from .config import ProbeConfig
from .domain_source import DomainSource
from .engine import ProbeEngine, Resolver, SystemResolver
from .enums import LogLevel
from .exceptions import SetupError
from .models import RunSummary
from .result_sink import END_OF_RESULTS, ResultSink, output_filename
from .strategies import StrategyRegistry, create_default_registry
from .worker_pool import WorkerPool


class ComparisonRun:
    """
    One comparison run over a domain list.

    Collaborators default to the real ones (system resolver, anyio network
    backend, built-in strategies, stdout mirror) and can be replaced for
    tests.
    """

    def __init__(
        self,
        config: ProbeConfig,
        registry: Optional[StrategyRegistry] = None,
        resolver: Optional[Resolver] = None,
        network_backend: Optional[httpcore.AsyncNetworkBackend] = None,
        mirror: Optional[TextIO] = None,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        self._config = config
        self._registry = registry or create_default_registry(config.handshake_timeout)
        self._resolver = resolver
        self._network_backend = network_backend
        self._mirror = mirror
        self._logger = logger
        self._started_at = int(time.time())

    @property
    def config(self) -> ProbeConfig:
        return self._config

    @property
    def registry(self) -> StrategyRegistry:
        return self._registry

    @property
    def output_path(self) -> Path:
        return Path(self._config.output_dir) / output_filename(self._started_at)

    async def run(self) -> RunSummary:
        """
        Execute the run to completion.

        Raises:
            DomainSourceError: If the domain list cannot be opened
            OutputStoreError: If the output file cannot be created
        """
        start = time.perf_counter()

        try:
            source = DomainSource(Path(self._config.domains)).open()
        except SetupError as e:
            self._log_error("Unable to open domain list", e)
            raise

        try:
            try:
                sink = ResultSink(
                    self.output_path, self._registry.columns, mirror=self._mirror
                ).open()
            except SetupError as e:
                self._log_error("Unable to create output file", e)
                raise

            try:
                self._log(
                    LogLevel.INFO,
                    "Starting comparison run",
                    {
                        "domains": str(self._config.domains),
                        "output": str(sink.path),
                        "parallelism": self._config.parallelism,
                        "timeout_s": self._config.timeout,
                        "strategies": self._registry.names,
                    },
                )
                summary = await self._run_pipeline(source, sink)
            finally:
                sink.close()
        finally:
            source.close()

        summary.duration_seconds = round(time.perf_counter() - start, 3)
        self._log(
            LogLevel.INFO,
            "Comparison run finished",
            {
                "output": summary.output_path,
                "rows": summary.rows_written,
                "timeouts": summary.timeouts,
                "dns_failures": summary.dns_failures,
                "connect_failures": summary.connect_failures,
                "strategy_failures": summary.strategy_failures,
                "duration_s": summary.duration_seconds,
            },
        )
        return summary

    async def _run_pipeline(self, source: DomainSource, sink: ResultSink) -> RunSummary:
        results: asyncio.Queue = asyncio.Queue(maxsize=self._config.parallelism)
        executor = ThreadPoolExecutor(
            max_workers=self._config.parallelism,
            thread_name_prefix="resolver",
        )

        engine = ProbeEngine(
            registry=self._registry,
            resolver=self._resolver or SystemResolver(executor),
            network_backend=self._network_backend,
            connect_timeout=self._config.connect_timeout,
            request_timeout=self._config.request_timeout,
            probe_request=self._config.probe_request,
            logger=self._logger,
        )
        pool = WorkerPool(
            probe=engine.probe,
            strategy_names=self._registry.names,
            parallelism=self._config.parallelism,
            timeout=self._config.timeout,
            logger=self._logger,
        )

        producer = asyncio.create_task(pool.run(source, results), name="worker-pool")
        consumer = asyncio.create_task(sink.consume(results), name="result-sink")
        try:
            await asyncio.wait({producer, consumer}, return_when=asyncio.FIRST_COMPLETED)
            if consumer.done():
                # The sink only stops before END_OF_RESULTS when a write failed
                consumer.result()
                raise RuntimeError("Result sink stopped before the run finished")

            producer.result()
            await results.put(END_OF_RESULTS)
            return await consumer
        except BaseException:
            producer.cancel()
            consumer.cancel()
            await asyncio.gather(producer, consumer, return_exceptions=True)
            raise
        finally:
            # Abandoned lookups must not hold up shutdown
            executor.shutdown(wait=False, cancel_futures=True)

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, "ComparisonRun", message, data)

    def _log_error(self, message: str, error: BaseException) -> None:
        if self._logger:
            self._logger.log_error("ComparisonRun", message, error=error)


async def run_comparison(
    config: ProbeConfig,
    logger: Optional[AuditLogger] = None,
    mirror: Optional[TextIO] = None,
) -> RunSummary:
    """Convenience wrapper: validate ``config`` and run it with the defaults."""
    config.validate()
    return await ComparisonRun(config, mirror=mirror, logger=logger).run()

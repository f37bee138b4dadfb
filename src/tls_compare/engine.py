"""
Probe engine: runs one domain through every registered strategy.

For a hostname the engine:
1. Resolves it; no address means every slot is a DNS failure
2. Connects to the first address on port 443 for the baseline strategy; a
   failed connect means every slot carries that connect failure and nothing
   else runs
3. Otherwise runs each strategy on its own fresh connection, recording
   every outcome independently of the others. Stream strategies get a
   stream dialed here; strategies that own their connection are pointed
   at the same address

Strategies for one domain run sequentially. All opened streams are closed
on every exit path, including cancellation by the worker's deadline.
"""

import asyncio
import socket
from concurrent.futures import Executor
from contextlib import suppress
from typing import Awaitable, Callable, Optional

import httpcore
import idna

from .audit_logger import AuditLogger
from .enums import ErrorKind, LogLevel
from .exceptions import ProbeRequestError
from .models import ComparisonResult, ProbeOutcome
from .strategies import ProbeStrategy, StrategyRegistry, StreamStrategy


TLS_PORT = 443
DEFAULT_CONNECT_TIMEOUT = 2.0

Resolver = Callable[[str], Awaitable[list[str]]]


class DNSResolutionFailed(Exception):
    """Raised by a resolver when a name has no usable address."""


class SystemResolver:
    """
    Resolve hostnames with the system resolver via ``getaddrinfo``.

    Lookups run on ``executor`` (the loop default when None). Addresses are
    returned in resolver order with duplicates removed.
    """

    def __init__(self, executor: Optional[Executor] = None) -> None:
        self._executor = executor

    async def __call__(self, hostname: str) -> list[str]:
        if not hostname:
            raise DNSResolutionFailed("empty hostname")

        loop = asyncio.get_running_loop()
        try:
            infos = await loop.run_in_executor(
                self._executor,
                lambda: socket.getaddrinfo(hostname, TLS_PORT, type=socket.SOCK_STREAM),
            )
        except (socket.gaierror, UnicodeError, OSError) as e:
            raise DNSResolutionFailed(str(e)) from e

        addresses: list[str] = []
        for _family, _type, _proto, _canonname, sockaddr in infos:
            address = sockaddr[0]
            if address not in addresses:
                addresses.append(address)
        return addresses


def to_ascii_hostname(server_name: str) -> str:
    """
    Convert a hostname to its ASCII (A-label) form for DNS, SNI and Host.

    Raises:
        DNSResolutionFailed: If the name cannot be IDNA-encoded
    """
    try:
        server_name.encode("ascii")
        return server_name
    except UnicodeEncodeError:
        pass
    try:
        return idna.encode(server_name, uts46=True).decode("ascii")
    except idna.IDNAError as e:
        raise DNSResolutionFailed(f"invalid hostname: {e}") from e


class ProbeEngine:
    """Per-domain orchestration of DNS, dialing and strategy handshakes."""

    def __init__(
        self,
        registry: StrategyRegistry,
        resolver: Optional[Resolver] = None,
        network_backend: Optional[httpcore.AsyncNetworkBackend] = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        request_timeout: Optional[float] = None,
        probe_request: bool = True,
        port: int = TLS_PORT,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        if len(registry) == 0:
            raise ValueError("Registry must contain at least one strategy")
        self._registry = registry
        self._resolver = resolver or SystemResolver()
        self._backend = network_backend or httpcore.AnyIOBackend()
        self._connect_timeout = connect_timeout
        self._request_timeout = request_timeout
        self._probe_request = probe_request
        self._port = port
        self._logger = logger

    @property
    def registry(self) -> StrategyRegistry:
        return self._registry

    async def probe(self, server_name: str) -> ComparisonResult:
        """Probe ``server_name`` with every registered strategy."""
        names = self._registry.names

        try:
            ascii_name = to_ascii_hostname(server_name)
            addresses = await self._resolver(ascii_name)
        except DNSResolutionFailed as e:
            self._log(LogLevel.DEBUG, "DNS resolution failed", server_name, error=str(e))
            addresses = []

        if not addresses:
            return ComparisonResult.uniform_failure(
                server_name, names, ErrorKind.DNS_RESOLUTION
            )

        address = addresses[0]
        outcomes: list[ProbeOutcome] = []

        for position, strategy in enumerate(self._registry):
            if strategy.owns_connection:
                outcome = await self._attempt(strategy, ascii_name, address)
            else:
                stream = await self._dial(address)
                if stream is None:
                    outcome = ProbeOutcome.failure(strategy.name, ErrorKind.CONNECT)
                else:
                    outcome = await self._run_strategy(strategy, stream, ascii_name)

            if outcome.error_kind is ErrorKind.CONNECT and position == 0:
                self._log(LogLevel.DEBUG, "Baseline connect failed", server_name, address=address)
                return ComparisonResult.uniform_failure(
                    server_name, names, ErrorKind.CONNECT, address=address
                )
            if not outcome.ok:
                self._log(
                    LogLevel.DEBUG,
                    "Strategy failed",
                    server_name,
                    strategy=strategy.name,
                    kind=outcome.error_kind.value,
                    error=outcome.error_message,
                )
            outcomes.append(outcome)

        return ComparisonResult(
            server_name=server_name,
            address=address,
            outcomes=tuple(outcomes),
            port=self._port,
        )

    async def _dial(self, address: str) -> Optional[httpcore.AsyncNetworkStream]:
        """Open a TCP connection, or return None when the dial fails."""
        try:
            return await self._backend.connect_tcp(
                address, self._port, timeout=self._connect_timeout
            )
        except (httpcore.ConnectError, httpcore.ConnectTimeout, OSError):
            return None

    async def _attempt(
        self,
        strategy: ProbeStrategy,
        server_name: str,
        address: str,
    ) -> ProbeOutcome:
        """Run a strategy that opens its own connection to ``address``."""
        try:
            return await strategy.attempt(
                server_name,
                address,
                port=self._port,
                connect_timeout=self._connect_timeout,
                request_timeout=self._request_timeout,
                probe_request=self._probe_request,
            )
        except Exception as e:
            return ProbeOutcome.failure(strategy.name, ErrorKind.HANDSHAKE, _message(e))

    async def _run_strategy(
        self,
        strategy: StreamStrategy,
        stream: httpcore.AsyncNetworkStream,
        server_name: str,
    ) -> ProbeOutcome:
        """Handshake (and optionally request) on ``stream``, always closing it."""
        secure_stream = stream
        try:
            try:
                secure_stream, negotiated = await strategy.handshake(stream, server_name)
            except Exception as e:
                return ProbeOutcome.failure(strategy.name, ErrorKind.HANDSHAKE, _message(e))

            if self._probe_request and strategy.supports_probe_request:
                try:
                    await strategy.issue_probe_request(
                        secure_stream, server_name, negotiated, timeout=self._request_timeout
                    )
                except ProbeRequestError as e:
                    return ProbeOutcome.failure(strategy.name, ErrorKind.REQUEST, e.message)
                except Exception as e:
                    return ProbeOutcome.failure(strategy.name, ErrorKind.REQUEST, _message(e))

            return ProbeOutcome.success(strategy.name, negotiated)
        finally:
            await _close_stream(secure_stream)
            if secure_stream is not stream:
                await _close_stream(stream)

    def _log(self, level: LogLevel, message: str, server_name: str, **data) -> None:
        if self._logger:
            self._logger.log(level, "ProbeEngine", message, {"server_name": server_name, **data})


async def _close_stream(stream: httpcore.AsyncNetworkStream) -> None:
    with suppress(httpcore.NetworkError, OSError):
        await stream.aclose()


def _message(error: BaseException) -> str:
    return str(error) or type(error).__name__

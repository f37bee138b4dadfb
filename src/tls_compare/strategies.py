"""
Probe strategies and the ordered strategy registry.

A strategy performs one TLS handshake (and, when enabled, one ``GET /``)
against a domain's probed address and reports the negotiated application
protocol. Stream strategies handshake over a connection the engine dialed;
fingerprint strategies drive curl_cffi, which dials the pinned address
itself so that the whole ClientHello is the impersonated browser's.

The registry fixes the order of strategies for a run; a strategy's
position is its bit in the failure mask and its column in the output file,
so new strategies are only ever appended.
"""

import ssl
from abc import ABC, abstractmethod
from typing import Callable, Iterable, Iterator, Optional

import httpcore
from curl_cffi import CurlError, CurlOpt
from curl_cffi.requests import AsyncSession

from .enums import ErrorKind
from .fingerprints import CHROME_101, FIREFOX_133, FingerprintProfile
from .http_probe import issue_probe_request
from .models import ProbeOutcome


ALPN_H2_HTTP11 = ["h2", "http/1.1"]

# libcurl CURLcode values
CURLE_COULDNT_RESOLVE_HOST = 6
CURLE_COULDNT_CONNECT = 7
CURLE_OPERATION_TIMEDOUT = 28

TLS_ERROR_CODES = frozenset({
    35,  # SSL_CONNECT_ERROR
    53,  # SSL_ENGINE_NOTFOUND
    54,  # SSL_ENGINE_SETFAILED
    58,  # SSL_CERTPROBLEM
    59,  # SSL_CIPHER
    60,  # PEER_FAILED_VERIFICATION
    64,  # USE_SSL_FAILED
    66,  # SSL_ENGINE_INITFAILED
    77,  # SSL_CACERT_BADFILE
    80,  # SSL_SHUTDOWN_FAILED
    82,  # SSL_CRL_BADFILE
    83,  # SSL_ISSUER_ERROR
    90,  # SSL_PINNEDPUBKEYNOTMATCH
    91,  # SSL_INVALIDCERTSTATUS
    98,  # SSL_CLIENTCERT
})

# CURLINFO_HTTP_VERSION values
HTTP_VERSION_PROTOCOLS = {
    1: "http/1.0",
    2: "http/1.1",
    3: "h2",
    30: "h3",
}


class ProbeStrategy(ABC):
    """
    A pluggable handshake provider.

    Strategies with ``owns_connection`` set open their own connection in
    ``attempt``; all others are handed a freshly dialed stream by the
    engine.
    """

    name: str = ""
    owns_connection: bool = False

    @abstractmethod
    def check(self) -> None:
        """Raise if this strategy cannot run on this machine."""

    @property
    def supports_probe_request(self) -> bool:
        return False

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"


class StreamStrategy(ProbeStrategy):
    """
    Handshake over a stream the engine dialed.

    Subclasses supply an SSL context; the handshake itself runs through the
    stream's ``start_tls``.
    """

    def __init__(self, handshake_timeout: Optional[float] = None) -> None:
        self._handshake_timeout = handshake_timeout
        self._context: Optional[ssl.SSLContext] = None

    @abstractmethod
    def build_context(self) -> ssl.SSLContext:
        """Return the client SSL context used for every handshake."""

    @property
    def context(self) -> ssl.SSLContext:
        if self._context is None:
            self._context = self.build_context()
        return self._context

    def check(self) -> None:
        self.build_context()

    async def handshake(
        self,
        stream: httpcore.AsyncNetworkStream,
        server_name: str,
    ) -> tuple[httpcore.AsyncNetworkStream, str]:
        """
        Upgrade ``stream`` to TLS with SNI ``server_name``.

        Returns:
            Tuple of (secured stream, negotiated ALPN protocol or "")

        Raises:
            Exception: Whatever the TLS layer raised; the caller records its
                message verbatim
        """
        secure_stream = await stream.start_tls(
            self.context,
            server_hostname=server_name,
            timeout=self._handshake_timeout,
        )
        ssl_object = secure_stream.get_extra_info("ssl_object")
        negotiated = ssl_object.selected_alpn_protocol() if ssl_object else None
        return secure_stream, negotiated or ""

    async def issue_probe_request(
        self,
        stream: httpcore.AsyncNetworkStream,
        server_name: str,
        negotiated_protocol: str,
        timeout: Optional[float] = None,
    ) -> int:
        """Confirm the secured stream carries a ``GET /`` exchange."""
        return await issue_probe_request(
            stream, server_name, negotiated_protocol, timeout=timeout
        )


class StandardTLSStrategy(StreamStrategy):
    """The platform's default TLS client configuration (baseline)."""

    name = "tls"

    def build_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context()
        context.set_alpn_protocols(list(ALPN_H2_HTTP11))
        return context

    @property
    def supports_probe_request(self) -> bool:
        return True


class FingerprintStrategy(ProbeStrategy):
    """
    A TLS client whose ClientHello is a browser's, via curl_cffi.

    curl is pinned to the engine's probed address with ``CURLOPT_RESOLVE``,
    so DNS is not consulted again and every strategy hits the same host.
    Certificates are verified, as for the baseline.
    """

    owns_connection = True

    def __init__(
        self,
        name: str,
        profile: FingerprintProfile,
        session_factory: Optional[Callable[..., AsyncSession]] = None,
    ) -> None:
        self.name = name
        self.profile = profile
        self._session_factory = session_factory or AsyncSession

    def check(self) -> None:
        self.profile.validate()

    @property
    def supports_probe_request(self) -> bool:
        return True

    def curl_options(
        self,
        server_name: str,
        address: str,
        port: int,
        connect_timeout: float,
        probe_request: bool,
    ) -> dict:
        options = {
            CurlOpt.RESOLVE: [resolve_entry(server_name, port, address)],
            CurlOpt.CONNECTTIMEOUT_MS: int(connect_timeout * 1000),
        }
        if not probe_request:
            # Stop once the TLS session is established
            options[CurlOpt.CONNECT_ONLY] = 1
        return options

    async def attempt(
        self,
        server_name: str,
        address: str,
        port: int = 443,
        connect_timeout: float = 2.0,
        request_timeout: Optional[float] = None,
        probe_request: bool = True,
    ) -> ProbeOutcome:
        """
        Connect to ``address``, handshake with SNI ``server_name`` and,
        when ``probe_request`` is set, send ``GET /``.

        Any HTTP status counts as success. curl failures are classified as
        connect, handshake or request failures with curl's message kept.
        """
        authority = server_name if port == 443 else f"{server_name}:{port}"
        request_options: dict = {"allow_redirects": False}
        if request_timeout is not None:
            request_options["timeout"] = request_timeout

        try:
            async with self._session_factory(
                curl_options=self.curl_options(
                    server_name, address, port, connect_timeout, probe_request
                ),
                verify=True,
                **self.profile.session_options(),
            ) as session:
                response = await session.get(f"https://{authority}/", **request_options)
        except CurlError as e:
            kind = classify_curl_error(e)
            if kind is ErrorKind.CONNECT:
                return ProbeOutcome.failure(self.name, ErrorKind.CONNECT)
            return ProbeOutcome.failure(self.name, kind, str(e) or type(e).__name__)

        return ProbeOutcome.success(self.name, negotiated_protocol(response))


def resolve_entry(server_name: str, port: int, address: str) -> str:
    """``CURLOPT_RESOLVE`` entry pinning ``server_name:port`` to ``address``."""
    if ":" in address:
        address = f"[{address}]"
    return f"{server_name}:{port}:{address}"


def classify_curl_error(error: CurlError) -> ErrorKind:
    """Map a curl failure onto the stage it happened in."""
    code = int(getattr(error, "code", 0) or 0)
    message = str(error)

    if code in (CURLE_COULDNT_CONNECT, CURLE_COULDNT_RESOLVE_HOST):
        return ErrorKind.CONNECT
    if code in TLS_ERROR_CODES:
        return ErrorKind.HANDSHAKE
    if code == CURLE_OPERATION_TIMEDOUT:
        # curl reports both dial and TLS stalls against the connect timeout
        if "SSL" in message or "TLS" in message:
            return ErrorKind.HANDSHAKE
        if "Failed to connect" in message or "Connection timed out" in message:
            return ErrorKind.CONNECT
    return ErrorKind.REQUEST


def negotiated_protocol(response) -> str:
    """ALPN protocol name for the HTTP version curl used, or ""."""
    version = int(getattr(response, "http_version", 0) or 0)
    return HTTP_VERSION_PROTOCOLS.get(version, "")


class StrategyRegistry:
    """Ordered, append-only collection of probe strategies."""

    def __init__(self, strategies: Iterable[ProbeStrategy] = ()) -> None:
        self._strategies: list[ProbeStrategy] = []
        for strategy in strategies:
            self.register(strategy)

    def register(self, strategy: ProbeStrategy) -> int:
        """
        Append a strategy and return its bit position.

        Raises:
            ValueError: If the name is empty or already registered
        """
        if not strategy.name:
            raise ValueError("Strategy name cannot be empty")
        if strategy.name in self.names:
            raise ValueError(f"Strategy '{strategy.name}' already registered")
        self._strategies.append(strategy)
        return len(self._strategies) - 1

    @property
    def names(self) -> list[str]:
        return [s.name for s in self._strategies]

    @property
    def columns(self) -> list[str]:
        """Output column names, one per strategy in registry order."""
        return [f"err_{name}" for name in self.names]

    @property
    def all_failed_mask(self) -> int:
        return (1 << len(self._strategies)) - 1

    def get(self, name: str) -> ProbeStrategy:
        for strategy in self._strategies:
            if strategy.name == name:
                return strategy
        raise KeyError(f"Unknown strategy: {name}")

    def __iter__(self) -> Iterator[ProbeStrategy]:
        return iter(list(self._strategies))

    def __len__(self) -> int:
        return len(self._strategies)

    def __getitem__(self, position: int) -> ProbeStrategy:
        return self._strategies[position]


def create_default_registry(handshake_timeout: Optional[float] = None) -> StrategyRegistry:
    """Standard stack first, then the Chrome and Firefox impersonating stacks."""
    return StrategyRegistry([
        StandardTLSStrategy(handshake_timeout=handshake_timeout),
        FingerprintStrategy("utls", CHROME_101),
        FingerprintStrategy("utlslight", FIREFOX_133),
    ])

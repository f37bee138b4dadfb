"""
Data models for the TLS stack comparison tool.

This module defines the per-strategy probe outcome, the per-domain
comparison result with its derived failure bit-mask, and the run summary.
"""

import ipaddress
import time
from dataclasses import dataclass, field
from typing import Optional, Sequence

from .enums import ErrorKind


DNS_RESOLUTION_MESSAGE = "unable to lookup IP"
CONNECT_MESSAGE = "unable to connect"
TIMEOUT_MESSAGE = "timeout reached"

DEFAULT_MESSAGES = {
    ErrorKind.DNS_RESOLUTION: DNS_RESOLUTION_MESSAGE,
    ErrorKind.CONNECT: CONNECT_MESSAGE,
    ErrorKind.TIMEOUT: TIMEOUT_MESSAGE,
}


@dataclass(frozen=True)
class ProbeOutcome:
    """Result of running one strategy against one domain."""

    strategy: str
    negotiated_protocol: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    error_message: str = ""

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    @property
    def error_text(self) -> str:
        """Empty on success, otherwise the human-readable failure message."""
        return "" if self.ok else self.error_message

    @classmethod
    def success(cls, strategy: str, negotiated_protocol: str) -> "ProbeOutcome":
        return cls(strategy=strategy, negotiated_protocol=negotiated_protocol)

    @classmethod
    def failure(
        cls,
        strategy: str,
        kind: ErrorKind,
        message: Optional[str] = None,
    ) -> "ProbeOutcome":
        if message is None:
            message = DEFAULT_MESSAGES.get(kind, kind.value)
        return cls(strategy=strategy, error_kind=kind, error_message=message)


@dataclass(frozen=True)
class ComparisonResult:
    """
    Aggregate result of probing one domain with every registered strategy.

    ``outcomes`` holds exactly one entry per registered strategy, in
    registry order. The failure bit-mask is always recomputed from them.
    """

    server_name: str
    address: Optional[str]
    outcomes: tuple[ProbeOutcome, ...]
    port: int = 443
    timestamp: int = field(default_factory=lambda: int(time.time()))

    @property
    def err_flags(self) -> int:
        """Bit i is set iff strategy i failed."""
        mask = 0
        for position, outcome in enumerate(self.outcomes):
            if not outcome.ok:
                mask |= 1 << position
        return mask

    @property
    def all_failed(self) -> bool:
        return self.err_flags == (1 << len(self.outcomes)) - 1

    @property
    def addr(self) -> str:
        """``ip:port`` of the probed address, empty when none was resolved."""
        if not self.address:
            return ""
        try:
            if ipaddress.ip_address(self.address).version == 6:
                return f"[{self.address}]:{self.port}"
        except ValueError:
            pass
        return f"{self.address}:{self.port}"

    def outcome_for(self, strategy: str) -> ProbeOutcome:
        for outcome in self.outcomes:
            if outcome.strategy == strategy:
                return outcome
        raise KeyError(strategy)

    @classmethod
    def uniform_failure(
        cls,
        server_name: str,
        strategy_names: Sequence[str],
        kind: ErrorKind,
        message: Optional[str] = None,
        address: Optional[str] = None,
    ) -> "ComparisonResult":
        """Build a result with the same failure in every strategy slot."""
        return cls(
            server_name=server_name,
            address=address,
            outcomes=tuple(
                ProbeOutcome.failure(name, kind, message) for name in strategy_names
            ),
        )


@dataclass
class RunSummary:
    """Counters collected while a run drains its results."""

    output_path: Optional[str] = None
    rows_written: int = 0
    timeouts: int = 0
    dns_failures: int = 0
    connect_failures: int = 0
    strategy_failures: dict[str, int] = field(default_factory=dict)
    duration_seconds: float = 0.0

    def record(self, result: ComparisonResult) -> None:
        self.rows_written += 1
        first = result.outcomes[0] if result.outcomes else None
        if first is not None and result.all_failed and first.error_kind is not None:
            if first.error_kind is ErrorKind.TIMEOUT:
                self.timeouts += 1
            elif first.error_kind is ErrorKind.DNS_RESOLUTION:
                self.dns_failures += 1
            elif first.error_kind is ErrorKind.CONNECT:
                self.connect_failures += 1
        for outcome in result.outcomes:
            if not outcome.ok:
                self.strategy_failures[outcome.strategy] = (
                    self.strategy_failures.get(outcome.strategy, 0) + 1
                )

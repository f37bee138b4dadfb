"""
TLS Compare - side-by-side TLS handshake comparison across client stacks.

This package probes a list of domains with a standard TLS client and with
clients whose ClientHello mimics common browsers, recording per domain which
stacks fail so that fingerprint-based TLS interference becomes visible.
"""

__version__ = "0.1.0"
__author__ = "TLS Compare Team"

from tls_compare.exceptions import (
    TLSCompareError,
    ConfigError,
    SetupError,
    DomainSourceError,
    OutputStoreError,
    ProbeRequestError,
)
from tls_compare.enums import (
    ErrorKind,
    LogLevel,
)
from tls_compare.config import (
    LoggingConfig,
    ProbeConfig,
    apply_environment,
    config_from_dict,
    load_config_from_file,
    save_config_to_file,
)
from tls_compare.models import (
    ProbeOutcome,
    ComparisonResult,
    RunSummary,
)
from tls_compare.fingerprints import (
    FingerprintProfile,
    CHROME_101,
    FIREFOX_133,
    PROFILES,
    get_profile,
)
from tls_compare.strategies import (
    ProbeStrategy,
    StreamStrategy,
    StandardTLSStrategy,
    FingerprintStrategy,
    StrategyRegistry,
    create_default_registry,
)
from tls_compare.domain_source import (
    DomainSource,
)
from tls_compare.engine import (
    ProbeEngine,
    SystemResolver,
    DNSResolutionFailed,
)
from tls_compare.worker_pool import (
    WorkerPool,
    PoolStats,
)
from tls_compare.result_sink import (
    ResultSink,
    END_OF_RESULTS,
    output_filename,
)
from tls_compare.audit_logger import (
    AuditLogger,
    LogEntry,
)
from tls_compare.orchestrator import (
    ComparisonRun,
    run_comparison,
)
from tls_compare.self_test import (
    SelfTest,
    SelfTestResult,
    EndpointTestResult,
    ConfigValidationResult,
    run_self_test,
)
from tls_compare.cli import (
    main as cli_main,
    create_parser,
)

__all__ = [
    # Exceptions
    "TLSCompareError",
    "ConfigError",
    "SetupError",
    "DomainSourceError",
    "OutputStoreError",
    "ProbeRequestError",
    # Enums
    "ErrorKind",
    "LogLevel",
    # Configuration
    "LoggingConfig",
    "ProbeConfig",
    "apply_environment",
    "config_from_dict",
    "load_config_from_file",
    "save_config_to_file",
    # Models
    "ProbeOutcome",
    "ComparisonResult",
    "RunSummary",
    # Fingerprints
    "FingerprintProfile",
    "CHROME_101",
    "FIREFOX_133",
    "PROFILES",
    "get_profile",
    # Strategies
    "ProbeStrategy",
    "StreamStrategy",
    "StandardTLSStrategy",
    "FingerprintStrategy",
    "StrategyRegistry",
    "create_default_registry",
    # Domain Source
    "DomainSource",
    # Engine
    "ProbeEngine",
    "SystemResolver",
    "DNSResolutionFailed",
    # Worker Pool
    "WorkerPool",
    "PoolStats",
    # Result Sink
    "ResultSink",
    "END_OF_RESULTS",
    "output_filename",
    # Audit Logger
    "AuditLogger",
    "LogEntry",
    # Orchestrator
    "ComparisonRun",
    "run_comparison",
    # Self-Test
    "SelfTest",
    "SelfTestResult",
    "EndpointTestResult",
    "ConfigValidationResult",
    "run_self_test",
    # CLI
    "cli_main",
    "create_parser",
]

"""
Property-based tests for configuration module.

Uses Hypothesis to verify file round-trips, the environment overlay and
range validation of the run configuration.
"""

import json
import tempfile
from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from tls_compare.config import (
    LoggingConfig,
    ProbeConfig,
    apply_environment,
    config_from_dict,
    load_config_from_file,
    save_config_to_file,
)
from tls_compare.exceptions import ConfigError


# Strategies for generating valid configuration objects

@st.composite
def logging_config_strategy(draw) -> LoggingConfig:
    """Generate valid LoggingConfig objects."""
    return LoggingConfig(
        level=draw(st.sampled_from(["debug", "info", "warn", "error"])),
        output_format=draw(st.sampled_from(["json", "text", "both"])),
    )


optional_timeout = st.one_of(
    st.none(),
    st.floats(min_value=0.1, max_value=60.0, allow_nan=False, allow_infinity=False),
)


@st.composite
def probe_config_strategy(draw) -> ProbeConfig:
    """Generate valid ProbeConfig objects."""
    path_part = st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789_-", min_size=1, max_size=20)
    return ProbeConfig(
        parallelism=draw(st.integers(min_value=1, max_value=1000)),
        timeout=draw(st.floats(min_value=0.5, max_value=120.0, allow_nan=False, allow_infinity=False)),
        domains=Path(draw(path_part) + ".txt"),
        output_dir=Path("/tmp") / draw(path_part),
        connect_timeout=draw(st.floats(min_value=0.1, max_value=10.0, allow_nan=False, allow_infinity=False)),
        handshake_timeout=draw(optional_timeout),
        request_timeout=draw(optional_timeout),
        probe_request=draw(st.booleans()),
        startup_self_test=draw(st.booleans()),
        self_test_urls=draw(st.lists(
            path_part.map(lambda s: f"https://{s}.example/"),
            max_size=3,
        )),
        logging=draw(logging_config_strategy()),
    )


class TestConfigurationRoundTripProperty:
    """Property-based tests for configuration serialization round-trip."""

    @given(config=probe_config_strategy())
    @settings(max_examples=100)
    def test_config_round_trip_preserves_data(self, config: ProbeConfig) -> None:
        """
        Property: a configuration round-trips through JSON without data loss.
        """
        json_str = json.dumps(config.to_dict(), sort_keys=True)
        reconstructed = config_from_dict(json.loads(json_str))

        assert reconstructed == config

    @given(config=probe_config_strategy())
    @settings(max_examples=30)
    def test_file_round_trip(self, config: ProbeConfig) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = Path(tmp_dir) / "nested" / "config.json"
            save_config_to_file(config, path)
            loaded = load_config_from_file(path)

        assert loaded == config

    @given(config=probe_config_strategy())
    @settings(max_examples=100)
    def test_valid_configs_pass_validation(self, config: ProbeConfig) -> None:
        config.validate()

    def test_partial_file_keeps_base_values(self) -> None:
        base = ProbeConfig(parallelism=7)
        merged = config_from_dict({"timeout": 3}, base)

        assert merged.parallelism == 7
        assert merged.timeout == 3.0
        assert merged.domains == Path("citizenlab-domains.txt")


class TestConfigValidation:
    """Tests for range validation."""

    @pytest.mark.parametrize(
        "overrides",
        [
            {"parallelism": 0},
            {"timeout": 0},
            {"timeout": -1},
            {"connect_timeout": 0},
            {"handshake_timeout": -2.0},
            {"logging": LoggingConfig(level="verbose")},
            {"logging": LoggingConfig(output_format="xml")},
        ],
    )
    def test_out_of_range_values_rejected(self, overrides: dict) -> None:
        config = ProbeConfig(**overrides)

        with pytest.raises(ConfigError) as exc_info:
            config.validate()

        assert exc_info.value.code == "invalid_config"
        assert len(exc_info.value.details["errors"]) == 1

    def test_non_numeric_value(self) -> None:
        with pytest.raises(ConfigError):
            config_from_dict({"parallelism": "many"})


class TestConfigFiles:
    """Tests for loading configuration files."""

    def test_missing_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            with pytest.raises(ConfigError) as exc_info:
                load_config_from_file(Path(tmp_dir) / "absent.json")

        assert exc_info.value.code == "config_not_found"

    def test_malformed_json(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = Path(tmp_dir) / "config.json"
            path.write_text("{not json", encoding="utf-8")

            with pytest.raises(ConfigError) as exc_info:
                load_config_from_file(path)

        assert exc_info.value.code == "config_unreadable"

    def test_non_object_root(self) -> None:
        with tempfile.TemporaryDirectory() as tmp_dir:
            path = Path(tmp_dir) / "config.json"
            path.write_text("[1, 2]", encoding="utf-8")

            with pytest.raises(ConfigError) as exc_info:
                load_config_from_file(path)

        assert exc_info.value.code == "invalid_config"


class TestEnvironmentOverlay:
    """Property-based tests for TLS_COMPARE_* variables."""

    @given(
        parallelism=st.integers(min_value=1, max_value=5000),
        timeout=st.integers(min_value=1, max_value=600),
    )
    @settings(max_examples=50)
    def test_environment_overrides_file_values(self, parallelism: int, timeout: int) -> None:
        base = ProbeConfig(parallelism=3, timeout=9.0)
        environ = {
            "TLS_COMPARE_PARALLELISM": str(parallelism),
            "TLS_COMPARE_TIMEOUT": str(timeout),
        }

        config = apply_environment(base, environ=environ)

        assert config.parallelism == parallelism
        assert config.timeout == float(timeout)

    def test_unrelated_variables_ignored(self) -> None:
        base = ProbeConfig()

        config = apply_environment(base, environ={"PARALLELISM": "1", "HOME": "/root"})

        assert config is base

    def test_logging_variables(self) -> None:
        config = apply_environment(
            ProbeConfig(),
            environ={"TLS_COMPARE_LOG_LEVEL": "debug", "TLS_COMPARE_DOMAINS": "/data/list.txt"},
        )

        assert config.logging.level == "debug"
        assert config.logging.output_format == "text"
        assert config.domains == Path("/data/list.txt")

    def test_dotenv_file_is_loaded(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TLS_COMPARE_OUTPUT_DIR", raising=False)
        dotenv_path = tmp_path / ".env"
        dotenv_path.write_text("TLS_COMPARE_OUTPUT_DIR=/srv/results\n", encoding="utf-8")

        config = apply_environment(ProbeConfig(), dotenv_path=dotenv_path)
        monkeypatch.delenv("TLS_COMPARE_OUTPUT_DIR", raising=False)

        assert config.output_dir == Path("/srv/results")

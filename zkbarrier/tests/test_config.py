"""
Unit Tests: Configuration and Errors

Tests:
    - Barrier configuration validation
    - Environment loading and command-line overrides
    - Error codes, kinds and log fields
"""

import pytest

from zkbarrier.core.config import BarrierConfig, CoordinationConfig, ZkBarrierConfig
from zkbarrier.core.types import PayloadKind
from zkbarrier.core.errors import (
    ErrorCode,
    CoordinationConnectionError,
    ListingError,
    ReadError,
    RegistrationError,
    SessionError,
)

_ENV_VARS = (
    "ZKBARRIER_HOSTS", "ZKBARRIER_PATH", "ZKBARRIER_COUNT", "ZKBARRIER_TOP_N",
    "ZKBARRIER_GRACE_MS", "ZKBARRIER_TIMEOUT_S", "ZKBARRIER_CONNECT_TIMEOUT_S",
    "ZKBARRIER_READ_TIMEOUT_S", "ZKBARRIER_LOG_LEVEL", "ZKBARRIER_LOG_JSON",
    "ZKBARRIER_METRICS",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestBarrierConfigValidation:
    """Tests for barrier invariants."""

    def test_defaults_are_valid(self):
        config = BarrierConfig()
        assert config.validate().is_ok()
        assert config.barrier_path == "/barrier"
        assert config.target_count == 50
        assert config.node_path_prefix == "/barrier/participant-"

    def test_target_must_be_positive(self):
        assert BarrierConfig(target_count=0).validate().is_err()

    @pytest.mark.parametrize("path", ["barrier", "/", "/barrier/", ""])
    def test_path_must_be_absolute_node(self, path):
        assert BarrierConfig(barrier_path=path).validate().is_err()

    def test_prefix_without_slash(self):
        assert BarrierConfig(node_prefix="a/b").validate().is_err()

    def test_timeout_positive_when_set(self):
        assert BarrierConfig(timeout_s=0).validate().is_err()
        assert BarrierConfig(timeout_s=1.5).validate().is_ok()

    def test_payload_requires_kind(self):
        assert BarrierConfig(payload=3).validate().is_err()

    def test_numeric_payload_rules(self):
        kind = PayloadKind.NUMERIC
        assert BarrierConfig(payload=3, payload_kind=kind).validate().is_ok()
        assert BarrierConfig(payload=2.5, payload_kind=kind).validate().is_ok()
        assert BarrierConfig(payload=True, payload_kind=kind).validate().is_err()
        assert BarrierConfig(payload="3", payload_kind=kind).validate().is_err()
        assert BarrierConfig(payload=float("nan"), payload_kind=kind).validate().is_err()

    def test_oversized_integer_is_rejected_not_raised(self):
        result = BarrierConfig(payload=10**400, payload_kind=PayloadKind.NUMERIC).validate()
        assert result.is_err()
        assert "out of range" in result.error

    def test_address_payload_rules(self):
        kind = PayloadKind.ADDRESS
        assert BarrierConfig(payload="10.0.0.1", payload_kind=kind).validate().is_ok()
        assert BarrierConfig(payload="  ", payload_kind=kind).validate().is_err()


class TestZkBarrierConfig:
    """Tests for environment loading and overrides."""

    def test_from_env_defaults(self, clean_env):
        config = ZkBarrierConfig.from_env().unwrap()
        assert config.coordination.hosts == "127.0.0.1:2181"
        assert config.barrier.timeout_s is None
        assert config.observability.log_json is False

    def test_from_env_reads_variables(self, clean_env):
        clean_env.setenv("ZKBARRIER_HOSTS", "zk1:2181,zk2:2181")
        clean_env.setenv("ZKBARRIER_PATH", "/jobs/start")
        clean_env.setenv("ZKBARRIER_COUNT", "8")
        clean_env.setenv("ZKBARRIER_TIMEOUT_S", "30")
        clean_env.setenv("ZKBARRIER_LOG_JSON", "true")
        clean_env.setenv("ZKBARRIER_LOG_LEVEL", "debug")

        config = ZkBarrierConfig.from_env().unwrap()
        assert config.coordination.hosts == "zk1:2181,zk2:2181"
        assert config.barrier.barrier_path == "/jobs/start"
        assert config.barrier.target_count == 8
        assert config.barrier.timeout_s == 30.0
        assert config.observability.log_json is True
        assert config.observability.log_level == "DEBUG"

    def test_from_env_metrics_switch(self, clean_env):
        assert ZkBarrierConfig.from_env().unwrap().observability.metrics_enabled is True
        clean_env.setenv("ZKBARRIER_METRICS", "off")
        assert ZkBarrierConfig.from_env().unwrap().observability.metrics_enabled is False

    def test_from_env_bad_number(self, clean_env):
        clean_env.setenv("ZKBARRIER_COUNT", "many")
        result = ZkBarrierConfig.from_env()
        assert result.is_err()
        assert "invalid environment value" in result.error

    def test_overrides_route_to_sections(self):
        config = ZkBarrierConfig().with_overrides(
            hosts="zk:2181",
            target_count=3,
            payload=7,
            payload_kind=PayloadKind.NUMERIC,
            log_level="DEBUG",
        )
        assert config.coordination.hosts == "zk:2181"
        assert config.barrier.target_count == 3
        assert config.barrier.payload == 7
        assert config.observability.log_level == "DEBUG"

    def test_none_overrides_ignored(self):
        config = ZkBarrierConfig().with_overrides(hosts=None, target_count=None)
        assert config == ZkBarrierConfig()

    def test_unknown_override_rejected(self):
        with pytest.raises(KeyError):
            ZkBarrierConfig().with_overrides(colour="blue")

    def test_validate_checks_coordination(self):
        config = ZkBarrierConfig(coordination=CoordinationConfig(hosts=" "))
        assert config.validate().is_err()
        config = ZkBarrierConfig(coordination=CoordinationConfig(read_timeout_s=0))
        assert config.validate().is_err()


class TestErrors:
    """Tests for the error hierarchy."""

    def test_kinds(self):
        assert CoordinationConnectionError.session_lost("LOST").error_kind == "CONNECTION"
        assert RegistrationError.node_create_failed("/b/p-").error_kind == "REGISTRATION"
        assert ListingError.list_failed("/b").error_kind == "LISTING"
        assert ReadError.read_failed("/b/p").error_kind == "READ"
        assert SessionError.timed_out("/b", 1.0, 1, 2).error_kind == "TIMEOUT"
        assert SessionError.stopped("/b").error_kind == "STOPPED"
        assert SessionError.invalid_config("x").error_kind == "CONFIG"
        assert SessionError.internal(ValueError("x")).error_kind == "INTERNAL"

    def test_cause_and_context(self):
        cause = OSError("refused")
        error = CoordinationConnectionError.connect_failed("zk:2181", 15.0, cause=cause)
        assert error.code is ErrorCode.CONNECTION_FAILED
        assert error.cause is cause
        assert error.context["hosts"] == "zk:2181"
        assert "zk:2181" in error.message

    def test_with_context_keeps_identity(self):
        error = ListingError.list_failed("/b")
        enriched = error.with_context(attempt=1)
        assert isinstance(enriched, ListingError)
        assert enriched.error_id == error.error_id
        assert enriched.context == {"path": "/b", "attempt": 1}

    def test_log_fields_avoid_record_attributes(self):
        error = ReadError.decode_failed("/b/p", b"\xff", "numeric", cause=ValueError("bad"))
        fields = error.log_fields()
        assert "message" not in fields
        assert fields["error_code"] == "READ_DECODE_FAILED"
        assert fields["cause"].startswith("ValueError")

    def test_to_dict(self):
        data = SessionError.stopped("/b").to_dict()
        assert data["code"] == "SESSION_STOPPED"
        assert data["code_value"] == 5002
        assert data["error_kind"] == "STOPPED"

    def test_is_exception(self):
        error = SessionError.stopped("/b")
        with pytest.raises(SessionError):
            raise error
        assert "SESSION_STOPPED" in str(error)

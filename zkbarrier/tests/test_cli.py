"""
Integration Tests: Command Line

Runs main() in-process with --local so no ZooKeeper is needed.

Tests:
    - Argument aliases and payload options
    - Local demo exit status and JSON outcome lines
    - Configuration errors exit with status 2
"""

import asyncio
import json

import pytest

from zkbarrier import __main__ as cli
from zkbarrier.core.types import PayloadKind
from zkbarrier.barrier.runner import Failed


@pytest.fixture(autouse=True)
def quiet(monkeypatch):
    for name in ("ZKBARRIER_HOSTS", "ZKBARRIER_PATH", "ZKBARRIER_COUNT", "ZKBARRIER_TIMEOUT_S"):
        monkeypatch.delenv(name, raising=False)
    # Leave the root logger as pytest configured it
    monkeypatch.setattr(cli, "setup_logging", lambda *args, **kwargs: None)


def _outcomes(captured):
    return [json.loads(line) for line in captured.out.splitlines() if line.strip()]


class TestArguments:
    """Tests for argument parsing and config assembly."""

    def test_aliases(self):
        parser = cli.build_parser()
        short = parser.parse_args(["--zk", "zk:2181", "--path", "/b", "--count", "4"])
        long = parser.parse_args(["--zookeeper", "zk:2181", "--barrier-path", "/b", "--participant-count", "4"])
        for args in (short, long):
            assert args.hosts == "zk:2181"
            assert args.barrier_path == "/b"
            assert args.target_count == 4

    def test_payload_options_exclusive(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["--value", "1", "--address", "1.2.3.4"])

    def test_load_config(self):
        args = cli.build_parser().parse_args(["--count", "3", "--address", "10.0.0.1", "--top-n", "2"])
        config = asyncio.run(cli.load_config(args)).unwrap()
        assert config.barrier.target_count == 3
        assert config.barrier.payload == "10.0.0.1"
        assert config.barrier.payload_kind is PayloadKind.ADDRESS
        assert config.barrier.top_n == 2

    def test_discover_address(self, monkeypatch):
        async def fake_discover():
            return "203.0.113.9"

        monkeypatch.setattr(cli, "discover_public_address", fake_discover)
        args = cli.build_parser().parse_args(["--count", "1", "--discover-address"])
        config = asyncio.run(cli.load_config(args)).unwrap()
        assert config.barrier.payload == "203.0.113.9"

    def test_discover_address_failure(self, monkeypatch):
        async def fake_discover():
            return None

        monkeypatch.setattr(cli, "discover_public_address", fake_discover)
        args = cli.build_parser().parse_args(["--discover-address"])
        assert asyncio.run(cli.load_config(args)).is_err()


class TestMain:
    """Tests for exit status and output."""

    def test_local_numeric_barrier(self, capsys):
        argv = ["--local", "--count", "3", "--value", "10", "--grace-ms", "20", "--timeout", "5"]
        status = asyncio.run(cli.main(argv))
        outcomes = _outcomes(capsys.readouterr())

        assert status == 0
        assert len(outcomes) == 3
        for outcome in outcomes:
            assert outcome["outcome"] == "passed"
            assert outcome["participant_count"] == 3
            assert outcome["summary"] == {"count": 3, "min": 10.0, "max": 12.0, "mean": 11.0}

    def test_local_single_participant(self, capsys):
        argv = ["--local", "--count", "1", "--path", "/jobs/start", "--grace-ms", "0"]
        assert asyncio.run(cli.main(argv)) == 0
        assert _outcomes(capsys.readouterr())[0]["node"] == "participant-0000000000"

    def test_failed_outcome_exits_1(self, capsys):
        status = cli.report(Failed(error_kind="TIMEOUT", message="not passed"))
        assert status == 1
        assert _outcomes(capsys.readouterr()) == [
            {"outcome": "failed", "error_kind": "TIMEOUT", "message": "not passed"},
        ]

    def test_invalid_count_exits_2(self, capsys):
        assert asyncio.run(cli.main(["--count", "0"])) == 2
        assert "target_count" in capsys.readouterr().err

    def test_invalid_log_level_exits_2(self, capsys):
        assert asyncio.run(cli.main(["--local", "--count", "1", "--log-level", "chatty"])) == 2
        assert "Unknown log level" in capsys.readouterr().err

    def test_bad_environment_exits_2(self, monkeypatch, capsys):
        monkeypatch.setenv("ZKBARRIER_COUNT", "lots")
        assert asyncio.run(cli.main(["--local"])) == 2

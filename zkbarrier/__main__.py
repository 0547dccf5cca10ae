#!/usr/bin/env python3
"""
zk-barrier: Wait Until N Processes Have Joined a ZooKeeper Barrier

Each process registers an ephemeral sequential node under the barrier
path and exits 0 once it has seen the target number of participants.
Optionally every participant publishes a value (a number or an address)
and the final aggregate is printed as JSON on stdout.

Usage:
    python -m zkbarrier --zk zk1:2181,zk2:2181 --path /jobs/start --count 8

    # Publish a number, print count/min/max/mean once everyone is in
    zk-barrier --count 3 --value 42

    # Publish this machine's public address
    zk-barrier --count 10 --discover-address --top-n 3

    # Self-contained demo: N in-process participants, no ZooKeeper needed
    zk-barrier --local --count 5 --value 10

Exit status:
    0    barrier passed
    1    barrier failed (connection, registration, listing, timeout)
    2    configuration error
    128+n  terminated by signal n
"""

from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys
from typing import Optional, Sequence

from zkbarrier import __version__
from zkbarrier.core import constants as C
from zkbarrier.core.config import ZkBarrierConfig
from zkbarrier.core.types import Result, Ok, Err, PayloadKind
from zkbarrier.coordination.memory import InMemoryCoordinationClient, InMemoryCoordinationStore
from zkbarrier.barrier.runner import BarrierOutcome, Passed, run_barrier
from zkbarrier.discovery import discover_public_address
from zkbarrier.observability.logging import LogLevel, StructuredLogger, setup_logging

log = StructuredLogger("zkbarrier.cli")


# =============================================================================
# ARGUMENTS
# =============================================================================
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zk-barrier",
        description="Block until the target number of participants join a ZooKeeper barrier.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--zk", "--zookeeper", dest="hosts",
        help=f"ZooKeeper connection string (default: $ZKBARRIER_HOSTS or {C.DEFAULT_HOSTS})",
    )
    parser.add_argument(
        "--path", "--barrier-path", dest="barrier_path",
        help=f"Barrier root node (default: {C.DEFAULT_BARRIER_PATH})",
    )
    parser.add_argument(
        "--count", "--participant-count", dest="target_count", type=int,
        help=f"Participants required to pass (default: {C.DEFAULT_TARGET_COUNT})",
    )

    payload = parser.add_mutually_exclusive_group()
    payload.add_argument("--value", type=float, help="Publish a numeric value")
    payload.add_argument("--address", help="Publish an address")
    payload.add_argument(
        "--discover-address", action="store_true",
        help="Publish this machine's public IP address",
    )

    parser.add_argument("--top-n", dest="top_n", type=int, help="Addresses listed in the summary")
    parser.add_argument(
        "--grace-ms", dest="grace_period_ms", type=int,
        help=f"Hold the node this long after passing (default: {C.DEFAULT_GRACE_PERIOD_MS})",
    )
    parser.add_argument(
        "--timeout", dest="timeout_s", type=float,
        help="Give up after this many seconds (default: wait forever)",
    )
    parser.add_argument("--log-level", dest="log_level", help="DEBUG, INFO, WARNING or ERROR")
    parser.add_argument(
        "--log-json", dest="log_json", action="store_true", default=None,
        help="Emit logs as JSON lines",
    )
    parser.add_argument(
        "--local", action="store_true",
        help="Run --count participants in this process against an in-memory store; "
             "with --value, participant i publishes value + i",
    )
    return parser


async def resolve_payload(args: argparse.Namespace) -> Result[dict[str, object], str]:
    """Payload overrides selected by the command line."""
    if args.value is not None:
        return Ok({"payload": args.value, "payload_kind": PayloadKind.NUMERIC})
    if args.address is not None:
        return Ok({"payload": args.address, "payload_kind": PayloadKind.ADDRESS})
    if args.discover_address:
        address = await discover_public_address()
        if address is None:
            return Err("could not discover a public address")
        return Ok({"payload": address, "payload_kind": PayloadKind.ADDRESS})
    return Ok({})


async def load_config(args: argparse.Namespace) -> Result[ZkBarrierConfig, str]:
    """Environment defaults with command-line overrides, validated."""
    base = ZkBarrierConfig.from_env()
    if base.is_err():
        return base

    payload = await resolve_payload(args)
    if payload.is_err():
        return payload

    config = base.unwrap().with_overrides(
        hosts=args.hosts,
        barrier_path=args.barrier_path,
        target_count=args.target_count,
        top_n=args.top_n,
        grace_period_ms=args.grace_period_ms,
        timeout_s=args.timeout_s,
        log_level=args.log_level,
        log_json=args.log_json,
        **payload.unwrap(),
    )
    valid = config.validate()
    if valid.is_err():
        return valid
    return Ok(config)


# =============================================================================
# RUN MODES
# =============================================================================
def report(outcome: BarrierOutcome) -> int:
    print(json.dumps(outcome.to_dict()), flush=True)
    return C.EXIT_OK if isinstance(outcome, Passed) else C.EXIT_BARRIER_FAILED


async def run_participant(config: ZkBarrierConfig) -> int:
    return report(await run_barrier(config))


async def run_local(config: ZkBarrierConfig) -> int:
    """Run target_count participants against one in-memory store."""
    store = InMemoryCoordinationStore()
    barrier = config.barrier

    def participant(index: int) -> ZkBarrierConfig:
        if barrier.payload_kind is PayloadKind.NUMERIC:
            return config.with_overrides(payload=float(barrier.payload) + index)
        return config

    outcomes = await asyncio.gather(*(
        run_barrier(participant(i), client=InMemoryCoordinationClient(store))
        for i in range(barrier.target_count)
    ))
    codes = [report(outcome) for outcome in outcomes]
    return max(codes)


async def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point. Returns the process exit status."""
    args = build_parser().parse_args(argv)

    config_result = await load_config(args)
    if config_result.is_err():
        print(f"Configuration error: {config_result.error}", file=sys.stderr)
        return C.EXIT_CONFIG_ERROR
    config = config_result.unwrap()

    try:
        level = LogLevel.parse(config.observability.log_level)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return C.EXIT_CONFIG_ERROR
    setup_logging(level, json_output=config.observability.log_json)

    work = asyncio.ensure_future(run_local(config) if args.local else run_participant(config))
    received: list[int] = []

    def on_signal(signum: int) -> None:
        log.warning("Received signal, closing connection", signal=signal.Signals(signum).name)
        received.append(signum)
        work.cancel()

    loop = asyncio.get_running_loop()
    installed: list[int] = []
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, on_signal, signum)
        except NotImplementedError:
            log.debug("Signal handlers unsupported on this platform")
            break
        installed.append(signum)

    try:
        return await work
    except asyncio.CancelledError:
        if not received:
            raise
        return 128 + received[0]
    finally:
        for signum in installed:
            loop.remove_signal_handler(signum)


def run() -> None:
    """Synchronous entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()

"""
Public Address Discovery

Asks a short list of "what is my IP" services, in order, for this
machine's public address. Used to fill the address payload when a
participant is started with --discover-address.

The first response that parses as an IPv4 or IPv6 address wins.
Unreachable services and junk responses are logged at debug and the
next service is tried; None means no service answered usefully.
"""

from __future__ import annotations

import asyncio
import ipaddress
import urllib.error
import urllib.request
from typing import Callable, Optional, Sequence

from zkbarrier.core import constants as C
from zkbarrier.observability.logging import StructuredLogger

log = StructuredLogger("zkbarrier.discovery")

DEFAULT_SERVICES: tuple[str, ...] = C.DISCOVERY_SERVICES

Fetcher = Callable[[str, float], str]


def fetch_text(url: str, timeout_s: float) -> str:
    """Blocking GET returning the stripped response body."""
    with urllib.request.urlopen(url, timeout=timeout_s) as response:
        return response.read().decode("utf-8", errors="replace").strip()


def parse_address(text: str) -> Optional[str]:
    """Normalized IP address string, or None if text is not one."""
    try:
        return str(ipaddress.ip_address(text.strip()))
    except ValueError:
        return None


async def discover_public_address(
    services: Sequence[str] = DEFAULT_SERVICES,
    timeout_s: float = C.DISCOVERY_TIMEOUT_S,
    fetch: Fetcher = fetch_text,
) -> Optional[str]:
    """
    Discover this machine's public IP address.

    Args:
        services: URLs returning the caller's address as plain text
        timeout_s: Per-service request timeout
        fetch: Blocking fetch function, run in a worker thread
    """
    for url in services:
        try:
            body = await asyncio.to_thread(fetch, url, timeout_s)
        except (urllib.error.URLError, OSError, ValueError) as e:
            log.debug("Address service unavailable", service=url, cause=str(e))
            continue

        address = parse_address(body)
        if address is None:
            log.debug("Address service returned junk", service=url, body=body[:64])
            continue

        log.info("Discovered public address", service=url, address=address)
        return address

    log.warning("Could not discover public address", services=len(services))
    return None

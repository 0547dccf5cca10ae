"""
Kazoo Coordination Client: ZooKeeper Access for the Barrier

Adapts kazoo's blocking, thread-based KazooClient to the async
CoordinationClient protocol.

Threading model:
    - Blocking kazoo calls run in worker threads (asyncio.to_thread)
    - kazoo delivers watch and state callbacks on its own event thread;
      they are marshalled onto the owning loop with call_soon_threadsafe
      so barrier state is only ever touched from the loop

Error mapping:
    | kazoo failure                    | Result                               |
    |----------------------------------|--------------------------------------|
    | start() timeout                  | CoordinationConnectionError          |
    | ensure_path NodeExistsError      | Ok (another participant won the race)|
    | create / ensure_path failure     | RegistrationError                    |
    | get_children failure             | ListingError                         |
    | get failure (incl. NoNodeError)  | ReadError                            |
    | KazooState.LOST                  | ConnectionEvent.LOST to listeners    |
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from kazoo.client import KazooClient
from kazoo.exceptions import KazooException, NodeExistsError
from kazoo.handlers.threading import KazooTimeoutError
from kazoo.protocol.states import KazooState, WatchedEvent

from zkbarrier.core.config import CoordinationConfig
from zkbarrier.core.types import Result, Ok, Err, ConnectionEvent
from zkbarrier.core.errors import (
    CoordinationConnectionError,
    ListingError,
    ReadError,
    RegistrationError,
)
from zkbarrier.coordination.protocols import ConnectionListener, WatchCallback

logger = logging.getLogger(__name__)

# Failures a kazoo call can surface besides its own exception tree
_CLIENT_ERRORS = (KazooException, KazooTimeoutError, OSError)

_STATE_EVENTS: dict[str, ConnectionEvent] = {
    KazooState.CONNECTED: ConnectionEvent.CONNECTED,
    KazooState.SUSPENDED: ConnectionEvent.SUSPENDED,
    KazooState.LOST: ConnectionEvent.LOST,
}


class KazooCoordinationClient:
    """
    CoordinationClient over a ZooKeeper ensemble.

    Usage:
        client = KazooCoordinationClient(CoordinationConfig(hosts="zk:2181"))
        result = await client.connect()
        ...
        await client.close()

    A preconfigured KazooClient (or a stand-in with the same methods)
    may be injected through the zk argument.
    """

    __slots__ = ("_config", "_zk", "_loop", "_listeners", "_closed", "_started")

    def __init__(
        self,
        config: Optional[CoordinationConfig] = None,
        zk: Optional[Any] = None,
    ) -> None:
        self._config = config or CoordinationConfig()
        self._zk = zk if zk is not None else KazooClient(
            hosts=self._config.hosts,
            timeout=self._config.session_timeout_s,
        )
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._listeners: list[ConnectionListener] = []
        self._closed = False
        self._started = False
        self._zk.add_listener(self._on_state)

    @property
    def hosts(self) -> str:
        return self._config.hosts

    async def connect(self) -> Result[None, CoordinationConnectionError]:
        self._loop = asyncio.get_running_loop()
        timeout = self._config.connect_timeout_s
        try:
            await asyncio.to_thread(self._zk.start, timeout)
        except _CLIENT_ERRORS as e:
            return Err(CoordinationConnectionError.connect_failed(
                self._config.hosts, timeout, cause=e,
            ))
        self._started = True
        logger.debug("Connected to %s", self._config.hosts)
        return Ok(None)

    async def ensure_path(self, path: str) -> Result[None, RegistrationError]:
        try:
            await asyncio.to_thread(self._zk.ensure_path, path)
        except NodeExistsError:
            # Created by another participant between kazoo's exists and create
            return Ok(None)
        except _CLIENT_ERRORS as e:
            return Err(RegistrationError.root_create_failed(path, cause=e))
        return Ok(None)

    async def create_sequential_ephemeral(
        self,
        path_prefix: str,
        data: Optional[bytes] = None,
    ) -> Result[str, RegistrationError]:
        try:
            created = await asyncio.to_thread(
                self._zk.create,
                path_prefix,
                data or b"",
                ephemeral=True,
                sequence=True,
            )
        except _CLIENT_ERRORS as e:
            return Err(RegistrationError.node_create_failed(path_prefix, cause=e))
        return Ok(created)

    async def list_children(
        self,
        path: str,
        on_change: WatchCallback,
    ) -> Result[list[str], ListingError]:
        try:
            children = await asyncio.to_thread(
                self._zk.get_children, path, self._wrap_watch(on_change),
            )
        except _CLIENT_ERRORS as e:
            return Err(ListingError.list_failed(path, cause=e))
        return Ok(list(children))

    async def read_data(self, path: str) -> Result[bytes, ReadError]:
        try:
            data, _stat = await asyncio.to_thread(self._zk.get, path)
        except _CLIENT_ERRORS as e:
            return Err(ReadError.read_failed(path, cause=e))
        return Ok(data or b"")

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._zk.remove_listener(self._on_state)
        if not self._started:
            self._zk.close()
            return
        try:
            await asyncio.to_thread(self._zk.stop)
        finally:
            self._zk.close()
        logger.debug("Closed connection to %s", self._config.hosts)

    def add_connection_listener(self, listener: ConnectionListener) -> None:
        self._listeners.append(listener)

    def remove_connection_listener(self, listener: ConnectionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # -------------------------------------------------------------------------
    # Callback marshalling (runs on kazoo's thread)
    # -------------------------------------------------------------------------

    def _call_on_loop(self, callback: Any, *args: Any) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("Dropping kazoo callback, event loop is gone")
            return
        loop.call_soon_threadsafe(callback, *args)

    def _wrap_watch(self, on_change: WatchCallback) -> Any:
        def watch(event: WatchedEvent) -> None:
            logger.debug("Watch fired: %s %s", event.type, event.path)
            self._call_on_loop(on_change)

        return watch

    def _on_state(self, state: str) -> None:
        event = _STATE_EVENTS.get(state)
        if event is None:
            return
        logger.debug("Connection state changed to %s", state)
        for listener in list(self._listeners):
            self._call_on_loop(listener, event)

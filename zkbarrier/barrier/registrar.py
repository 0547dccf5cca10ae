"""
Participant Registrar: Announce This Process Under the Barrier Root

Two calls, in order:
    1. ensure_path(barrier_path)         idempotent, safe under races
    2. create ephemeral sequential child with the payload attached

The payload is attached by the create call itself; it is never written
afterwards. The node is never deleted here: the service removes it
when this process's session ends.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from zkbarrier.core import constants as C
from zkbarrier.core.types import Result, Ok, basename, sequence_of
from zkbarrier.core.errors import RegistrationError
from zkbarrier.coordination.protocols import CoordinationClient
from zkbarrier.observability.logging import StructuredLogger

log = StructuredLogger("zkbarrier.barrier.registrar")


@dataclass(frozen=True, slots=True)
class ParticipantNode:
    """This process's own node under the barrier root."""
    path: str
    name: str
    sequence: Optional[int]

    @classmethod
    def from_path(cls, path: str) -> ParticipantNode:
        name = basename(path)
        return cls(path=path, name=name, sequence=sequence_of(name))


class ParticipantRegistrar:
    """Creates the barrier root if needed, then this participant's node."""

    __slots__ = ("_client",)

    def __init__(self, client: CoordinationClient) -> None:
        self._client = client

    async def register(
        self,
        barrier_path: str,
        payload: Optional[bytes] = None,
        prefix: str = C.DEFAULT_NODE_PREFIX,
    ) -> Result[ParticipantNode, RegistrationError]:
        root = await self._client.ensure_path(barrier_path)
        if root.is_err():
            return root

        created = await self._client.create_sequential_ephemeral(
            f"{barrier_path}/{prefix}", payload,
        )
        if created.is_err():
            return created

        node = ParticipantNode.from_path(created.unwrap())
        log.info(
            "Registered participant",
            node=node.name,
            payload_bytes=len(payload) if payload else 0,
        )
        return Ok(node)

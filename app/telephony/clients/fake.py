"""Deterministic in-memory telephony client"""

import asyncio
import itertools
from typing import Dict, List, Optional, Set, Tuple

from app.telephony.clients.base import (
    ConnectionNotFoundError,
    TelephonyClient,
    TelephonyError,
)
from app.telephony.envelopes import (
    CALL_CONNECTED,
    CALL_DISCONNECTED,
    CALL_TRANSFER_ACCEPTED,
    CALL_TRANSFER_FAILED,
    TRANSFER_COMPLETED_MESSAGE,
    TRANSFER_COMPLETED_SUBCODE,
    make_envelope,
)


class FakeTelephonyClient(TelephonyClient):
    """
    Test double for the telephony control plane.

    Nothing happens on a timer: failures are scripted with fail_next(),
    operations can be held with block() until the test sets the returned
    event, and remote-side changes are produced as webhook envelopes.
    """

    name = "fake"

    def __init__(self):
        self._ids = itertools.count(1)
        self.active_connections: Set[str] = set()
        self.answered: List[Tuple[str, str]] = []
        self.transfers: List[Tuple[str, str]] = []
        self.hangups: List[str] = []
        self._failures: Dict[str, List[Exception]] = {}
        self._gates: Dict[str, asyncio.Event] = {}

    def fail_next(self, operation: str, error: Optional[Exception] = None) -> None:
        """Make the next call of answer/transfer/hangup raise"""
        self._failures.setdefault(operation, []).append(
            error or TelephonyError(f"{operation} rejected", code="500")
        )

    def block(self, operation: str) -> asyncio.Event:
        """Hold every call of an operation until the returned event is set"""
        gate = asyncio.Event()
        self._gates[operation] = gate
        return gate

    async def _enter(self, operation: str) -> None:
        gate = self._gates.get(operation)
        if gate is not None:
            await gate.wait()
        failures = self._failures.get(operation)
        if failures:
            raise failures.pop(0)

    async def answer(self, incoming_context: str, callback_url: str) -> str:
        await self._enter("answer")
        connection_id = f"conn-{next(self._ids)}"
        self.active_connections.add(connection_id)
        self.answered.append((incoming_context, connection_id))
        return connection_id

    async def transfer_to_identity(self, connection_id: str, identity: str) -> None:
        await self._enter("transfer")
        if connection_id not in self.active_connections:
            raise ConnectionNotFoundError(f"Connection {connection_id} not found", code="8522")
        self.transfers.append((connection_id, identity))

    async def hangup(self, connection_id: str, for_everyone: bool = True) -> None:
        await self._enter("hangup")
        if connection_id not in self.active_connections:
            raise ConnectionNotFoundError(f"Connection {connection_id} not found", code="8522")
        self.active_connections.discard(connection_id)
        self.hangups.append(connection_id)

    def drop(self, connection_id: str) -> None:
        """The remote side ended the connection"""
        self.active_connections.discard(connection_id)

    # Envelopes for remote-side events

    def connected_event(self, connection_id: str) -> dict:
        return make_envelope(CALL_CONNECTED, {"callConnectionId": connection_id})

    def disconnected_event(self, connection_id: str, message: str = "", sub_code: int = 0) -> dict:
        self.drop(connection_id)
        return make_envelope(
            CALL_DISCONNECTED,
            {
                "callConnectionId": connection_id,
                "resultInformation": {"code": 200, "subCode": sub_code, "message": message},
            },
        )

    def transfer_completed_disconnect_event(self, connection_id: str) -> dict:
        return make_envelope(
            CALL_DISCONNECTED,
            {
                "callConnectionId": connection_id,
                "resultInformation": {
                    "code": 200,
                    "subCode": TRANSFER_COMPLETED_SUBCODE,
                    "message": f"The {TRANSFER_COMPLETED_MESSAGE}.",
                },
            },
        )

    def transfer_accepted_event(self, connection_id: str) -> dict:
        return make_envelope(CALL_TRANSFER_ACCEPTED, {"callConnectionId": connection_id})

    def transfer_failed_event(self, connection_id: str) -> dict:
        return make_envelope(
            CALL_TRANSFER_FAILED,
            {
                "callConnectionId": connection_id,
                "resultInformation": {"code": 500, "subCode": 0, "message": "Transfer failed"},
            },
        )

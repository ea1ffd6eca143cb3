"""Asynchronous call events from the telephony control plane"""

from typing import Any, Dict, Optional

import structlog

from app.models.call import Call, CallStatus
from app.services.call_router import CallRouter, call_payload
from app.services.notifications import NotificationBus
from app.telephony.envelopes import (
    CALL_CONNECTED,
    CALL_DISCONNECTED,
    CALL_TRANSFER_ACCEPTED,
    CALL_TRANSFER_FAILED,
    extract_connection_info,
    is_transfer_disconnect,
)

logger = structlog.get_logger()


class TelephonyEventHandler:
    """
    Correlates control-plane events back to calls.

    Connected events are advisory: the answer path owns RINGING to
    CONNECTED. A disconnect ends the call unless it only reports a
    completed transfer.
    """

    def __init__(self, router: CallRouter, notifications: NotificationBus):
        self.router = router
        self.notifications = notifications

    def _find_call(self, info: Dict[str, Optional[str]]) -> Optional[Call]:
        call = None
        if info["connection_id"]:
            call = self.router.find_by_external_connection_id(info["connection_id"])
        if call is None and info["incoming_context"]:
            call = self.router.find_by_incoming_context(info["incoming_context"])
        return call

    async def handle_event(self, event_type: str, data: Dict[str, Any]) -> Optional[str]:
        """Process one event; returns the affected call id, if any"""
        handlers = {
            CALL_CONNECTED: self.on_connected,
            CALL_DISCONNECTED: self.on_disconnected,
            CALL_TRANSFER_ACCEPTED: self.on_transfer_accepted,
            CALL_TRANSFER_FAILED: self.on_transfer_failed,
        }
        handler = handlers.get(event_type)
        if handler is None:
            logger.info("Ignoring telephony event", event_type=event_type)
            return None
        return await handler(data)

    async def on_connected(self, data: Dict[str, Any]) -> Optional[str]:
        info = extract_connection_info(data)
        call = self._find_call(info)
        if not call:
            logger.info("Connected event for unknown call", external_connection_id=info["connection_id"])
            return None

        logger.info("Call connected", call_id=call.id, external_connection_id=info["connection_id"])
        self.notifications.broadcast("call_connected", call_payload(call))
        return call.id

    async def on_disconnected(self, data: Dict[str, Any]) -> Optional[str]:
        info = extract_connection_info(data)
        if is_transfer_disconnect(data):
            logger.info(
                "Disconnect reports a completed transfer, ignoring",
                external_connection_id=info["connection_id"],
            )
            return None

        call = self._find_call(info)
        if not call:
            logger.info("Disconnect for unknown call", external_connection_id=info["connection_id"])
            return None
        if call.status == CallStatus.ENDED:
            return call.id

        result = await self.router.end_call(call.id)
        if not result.ok and call.status == CallStatus.ENDED:
            # An explicit end won the race for the call
            logger.info(
                "Call already ended before disconnect",
                call_id=call.id,
                external_connection_id=info["connection_id"],
            )
        elif not result.ok:
            logger.error(
                "Failed to end call after disconnect",
                call_id=call.id,
                external_connection_id=info["connection_id"],
                error=result.detail,
            )
        return call.id

    async def on_transfer_accepted(self, data: Dict[str, Any]) -> Optional[str]:
        info = extract_connection_info(data)
        call = self._find_call(info)
        if not call:
            return None

        self.router.clear_external_connection(call.id)
        logger.info(
            "Transfer accepted, agent session owns the call",
            call_id=call.id,
            external_connection_id=info["connection_id"],
        )
        return call.id

    async def on_transfer_failed(self, data: Dict[str, Any]) -> Optional[str]:
        info = extract_connection_info(data)
        call = self._find_call(info)
        result = data.get("resultInformation") or {}
        logger.error(
            "Telephony transfer failed",
            call_id=call.id if call else None,
            external_connection_id=info["connection_id"],
            code=result.get("code"),
            message=result.get("message"),
        )
        return call.id if call else None

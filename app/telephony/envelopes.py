"""Webhook event envelopes delivered by the telephony control plane"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

SUBSCRIPTION_VALIDATION = "SubscriptionValidationEvent"
INCOMING_CALL = "IncomingCall"
CALL_CONNECTED = "CallConnected"
CALL_DISCONNECTED = "CallDisconnected"
CALL_TRANSFER_ACCEPTED = "CallTransferAccepted"
CALL_TRANSFER_FAILED = "CallTransferFailed"

# A completed transfer also disconnects the server-side leg
TRANSFER_COMPLETED_SUBCODE = 7015
TRANSFER_COMPLETED_MESSAGE = "transfer completed successfully"


def event_type_of(envelope: Dict[str, Any]) -> str:
    """
    Short event name of an envelope.

    Namespaced names such as "Microsoft.Communication.IncomingCall" and
    bare names such as "IncomingCall" are treated alike.
    """
    raw = envelope.get("eventType") or envelope.get("type") or ""
    return str(raw).rsplit(".", 1)[-1]


def _nested(data: Dict[str, Any], *path: str) -> Optional[Any]:
    value: Any = data
    for key in path:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def extract_numbers(data: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    """(destination, caller) phone numbers of an incoming call event"""
    return (
        _nested(data, "to", "phoneNumber", "value"),
        _nested(data, "from", "phoneNumber", "value"),
    )


def extract_connection_info(data: Dict[str, Any]) -> Dict[str, Optional[str]]:
    """Connection id and incoming call context of an event payload"""
    incoming_context = (
        data.get("incomingCallContext")
        or _nested(data, "data", "incomingCallContext")
        or _nested(data, "eventGridEvent", "data", "incomingCallContext")
    )
    return {
        "connection_id": data.get("callConnectionId"),
        "incoming_context": incoming_context,
    }


def is_transfer_disconnect(data: Dict[str, Any]) -> bool:
    """Whether a disconnect only reports a completed transfer"""
    result = data.get("resultInformation") or {}
    message = str(result.get("message") or "").lower()
    sub_code = result.get("subCode")
    try:
        sub_code = int(sub_code) if sub_code is not None else None
    except (TypeError, ValueError):
        sub_code = None
    return TRANSFER_COMPLETED_MESSAGE in message or sub_code == TRANSFER_COMPLETED_SUBCODE


def make_envelope(event_type: str, data: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": str(uuid.uuid4()),
        "eventType": f"Microsoft.Communication.{event_type}",
        "eventTime": datetime.now(timezone.utc).isoformat(),
        "data": data,
    }


def validation_envelope(validation_code: str) -> Dict[str, Any]:
    return {
        "id": str(uuid.uuid4()),
        "eventType": f"Microsoft.EventGrid.{SUBSCRIPTION_VALIDATION}",
        "data": {"validationCode": validation_code},
    }


def incoming_call_envelope(
    destination: str,
    caller: str,
    incoming_context: Optional[str] = None,
) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "to": {"kind": "phoneNumber", "phoneNumber": {"value": destination}},
        "from": {"kind": "phoneNumber", "phoneNumber": {"value": caller}},
    }
    if incoming_context:
        data["incomingCallContext"] = incoming_context
    return make_envelope(INCOMING_CALL, data)

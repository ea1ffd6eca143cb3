"""Twilio webhook handlers"""

from typing import Optional

from fastapi import APIRouter, Depends, Form, Request, Response
from twilio.twiml.voice_response import VoiceResponse
import structlog

from app.dependencies import Services, get_services

router = APIRouter()
logger = structlog.get_logger()

TERMINAL_STATUSES = ("completed", "failed", "busy", "no-answer", "canceled")


def _twiml(response: VoiceResponse) -> Response:
    return Response(content=str(response), media_type="application/xml")


@router.post("/voice")
async def handle_voice_webhook(
    request: Request,
    services: Services = Depends(get_services),
    CallSid: str = Form(...),
    From: str = Form(...),
    To: str = Form(...),
    CallStatus: str = Form(default="ringing"),
    Direction: str = Form(default="inbound"),
):
    """
    Handle incoming voice call from Twilio.
    Routes the call and returns TwiML that holds the caller until an agent
    answers; the CallSid is the call's incoming context.
    """
    logger.info(
        "Incoming call",
        call_sid=CallSid,
        from_number=From,
        to_number=To,
        status=CallStatus,
        direction=Direction,
    )

    call = await services.router.handle_incoming_call(
        To,
        From,
        {"incoming_context": CallSid, "connection_id": None},
    )

    response = VoiceResponse()
    if not call:
        logger.warning("Unknown phone number", to_number=To)
        response.say("Sorry, this number is not configured. Goodbye.")
        response.hangup()
        return _twiml(response)

    logger.info(
        "Call record created",
        call_id=call.id,
        group_id=call.group_id,
        status=call.status.value,
    )

    response.say(services.settings.hold_message)
    response.pause(length=600)
    return _twiml(response)


@router.post("/status")
async def handle_status_webhook(
    request: Request,
    services: Services = Depends(get_services),
    CallSid: str = Form(...),
    CallStatus: str = Form(...),
    CallDuration: Optional[str] = Form(default=None),
):
    """Handle call status updates from Twilio"""
    logger.info(
        "Call status update",
        call_sid=CallSid,
        status=CallStatus,
        duration=CallDuration,
    )

    data = {"callConnectionId": CallSid, "incomingCallContext": CallSid}
    if CallStatus in TERMINAL_STATUSES:
        await services.events.on_disconnected(data)
    elif CallStatus == "in-progress":
        await services.events.on_connected(data)

    return {"status": "ok"}

"""Twilio telephony client"""

import asyncio

from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client as TwilioClient
from twilio.twiml.voice_response import VoiceResponse, Dial
import structlog

from app.telephony.clients.base import (
    ConnectionNotFoundError,
    TelephonyClient,
    TelephonyError,
)

logger = structlog.get_logger()

# Twilio error codes meaning the call leg is already gone
TWILIO_NOT_FOUND = 20404
TWILIO_CALL_NOT_IN_PROGRESS = 21220
GONE_CODES = (TWILIO_NOT_FOUND, TWILIO_CALL_NOT_IN_PROGRESS)


class TwilioTelephonyClient(TelephonyClient):
    """
    Call control through the Twilio REST API.

    The inbound CallSid is both the incoming context and the connection id:
    answering redirects the caller to hold TwiML, transferring redirects it
    to <Dial><Client>, and hanging up completes the call resource.
    """

    name = "twilio"

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        hold_message: str = "Please hold while we connect you to an agent.",
    ):
        self.client = TwilioClient(account_sid, auth_token)
        self.hold_message = hold_message

    def _hold_twiml(self) -> str:
        response = VoiceResponse()
        response.say(self.hold_message)
        response.pause(length=600)
        return str(response)

    async def _update_call(self, call_sid: str, **kwargs):
        # The Twilio REST client is blocking
        try:
            return await asyncio.to_thread(self.client.calls(call_sid).update, **kwargs)
        except TwilioRestException as e:
            if e.status == 404 or e.code in GONE_CODES:
                raise ConnectionNotFoundError(e.msg, code=str(e.code)) from e
            raise TelephonyError(e.msg, code=str(e.code)) from e

    async def answer(self, incoming_context: str, callback_url: str) -> str:
        call = await self._update_call(
            incoming_context,
            twiml=self._hold_twiml(),
            status_callback=callback_url,
            status_callback_method="POST",
        )
        logger.debug("Twilio call answered", call_sid=call.sid)
        return call.sid

    async def transfer_to_identity(self, connection_id: str, identity: str) -> None:
        response = VoiceResponse()
        dial = Dial()
        dial.client(identity)
        response.append(dial)
        await self._update_call(connection_id, twiml=str(response))
        logger.debug("Twilio call redirected to client", call_sid=connection_id, identity=identity)

    async def hangup(self, connection_id: str, for_everyone: bool = True) -> None:
        # Completing the parent call ends every leg dialled from it
        await self._update_call(connection_id, status="completed")

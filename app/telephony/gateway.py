"""Telephony gateway: the call router's view of the external control plane"""

import asyncio
from dataclasses import dataclass
from typing import Optional

import structlog

from app.config import Settings
from app.models.call import Call
from app.telephony.clients.base import (
    ConnectionNotFoundError,
    TelephonyClient,
    TelephonyError,
)
from app.telephony.clients.fake import FakeTelephonyClient
from app.telephony.clients.twilio import TwilioTelephonyClient

logger = structlog.get_logger()


@dataclass
class AnswerResult:
    success: bool
    connection_id: Optional[str] = None
    error: Optional[str] = None


class TelephonyGateway:
    """
    Translates call router operations into control-plane operations.

    Every external call is bounded by a timeout; expiry counts as a gateway
    failure. Nothing is retried here. Without a client the gateway runs in
    local-only mode and every operation succeeds without external effect.
    """

    def __init__(
        self,
        client: Optional[TelephonyClient],
        callback_url: str,
        timeout: float = 10.0,
    ):
        self.client = client
        self.callback_url = callback_url
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    @property
    def provider(self) -> str:
        return self.client.name if self.client else "none"

    async def answer(self, call: Call, agent_identity: Optional[str]) -> AnswerResult:
        """
        Answer the call and hand it to the agent's telephony session.

        Success requires both legs. A failed handoff after a successful
        answer is returned as a failure carrying the connection id; the
        connected leg is not rolled back.
        """
        if self.client is None:
            logger.warning("Telephony not configured, answering locally", call_id=call.id)
            return AnswerResult(success=True)

        if not call.external_incoming_context:
            logger.error("Cannot answer call without incoming context", call_id=call.id)
            return AnswerResult(success=False, error="missing incoming context")

        try:
            connection_id = await asyncio.wait_for(
                self.client.answer(call.external_incoming_context, self.callback_url),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.error("Telephony answer timed out", call_id=call.id, timeout=self.timeout)
            return AnswerResult(success=False, error="answer timed out")
        except TelephonyError as e:
            logger.error("Telephony answer failed", call_id=call.id, error=str(e), code=e.code)
            return AnswerResult(success=False, error=str(e))

        logger.info("Call answered", call_id=call.id, external_connection_id=connection_id)

        if not agent_identity:
            logger.warning(
                "Agent has no telephony identity, call not handed off",
                call_id=call.id,
                external_connection_id=connection_id,
            )
            return AnswerResult(success=True, connection_id=connection_id)

        try:
            await asyncio.wait_for(
                self.client.transfer_to_identity(connection_id, agent_identity),
                timeout=self.timeout,
            )
        except (TelephonyError, asyncio.TimeoutError) as e:
            logger.error(
                "Call answered but handoff to agent failed",
                call_id=call.id,
                external_connection_id=connection_id,
                identity=agent_identity,
                error=str(e) or type(e).__name__,
            )
            return AnswerResult(
                success=False,
                connection_id=connection_id,
                error="transfer to agent failed",
            )

        logger.info(
            "Call handed off to agent",
            call_id=call.id,
            external_connection_id=connection_id,
            identity=agent_identity,
        )
        return AnswerResult(success=True, connection_id=connection_id)

    async def hangup(self, call: Call) -> bool:
        """End the external leg; a connection that is already gone counts as ended"""
        if self.client is None:
            logger.warning("Telephony not configured, ending locally", call_id=call.id)
            return True

        connection_id = call.external_connection_id
        if not connection_id:
            # The agent's own telephony session owns the call
            return True

        try:
            await asyncio.wait_for(
                self.client.hangup(connection_id, for_everyone=True),
                timeout=self.timeout,
            )
        except ConnectionNotFoundError:
            logger.info(
                "Call connection already gone",
                call_id=call.id,
                external_connection_id=connection_id,
            )
            return True
        except asyncio.TimeoutError:
            logger.error(
                "Telephony hangup timed out",
                call_id=call.id,
                external_connection_id=connection_id,
                timeout=self.timeout,
            )
            return False
        except TelephonyError as e:
            logger.error(
                "Telephony hangup failed",
                call_id=call.id,
                external_connection_id=connection_id,
                error=str(e),
                code=e.code,
            )
            return False

        logger.info("Call hung up", call_id=call.id, external_connection_id=connection_id)
        return True


def _twilio_client(settings: Settings) -> Optional[TelephonyClient]:
    if not settings.twilio_configured:
        return None
    return TwilioTelephonyClient(
        account_sid=settings.twilio_account_sid,
        auth_token=settings.twilio_auth_token,
        hold_message=settings.hold_message,
    )


def _build_client(settings: Settings) -> Optional[TelephonyClient]:
    """Get the configured provider client, or None when it cannot be built"""
    providers = {
        "twilio": _twilio_client,
        "fake": lambda _settings: FakeTelephonyClient(),
        "none": lambda _settings: None,
    }

    factory = providers.get(settings.telephony_provider)
    if factory is None:
        raise ValueError(f"Unknown telephony provider: {settings.telephony_provider}")

    client = factory(settings)
    if client is None:
        logger.warning(
            "Telephony provider not configured, running in local-only mode",
            provider=settings.telephony_provider,
        )
    return client


def get_telephony_gateway(
    settings: Settings,
    client: Optional[TelephonyClient] = None,
) -> TelephonyGateway:
    """Factory function to create the telephony gateway"""
    if client is None:
        client = _build_client(settings)

    if client is not None and settings.callback_is_local:
        logger.warning(
            "Telephony callback URL is local and cannot be reached by the provider",
            callback_url=settings.telephony_callback_url,
        )

    return TelephonyGateway(
        client=client,
        callback_url=settings.telephony_callback_url,
        timeout=settings.telephony_timeout_seconds,
    )

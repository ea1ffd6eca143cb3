"""Call API endpoints"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from twilio.jwt.access_token import AccessToken
from twilio.jwt.access_token.grants import VoiceGrant
import structlog

from app.dependencies import Services, get_call_router, get_services
from app.schemas.call import (
    AnswerCallRequest,
    CallResponse,
    EndCallRequest,
    TokenResponse,
    TransferCallRequest,
)
from app.services.call_router import (
    CallOperationError,
    CallOperationResult,
    CallRouter,
)

router = APIRouter()
logger = structlog.get_logger()

ERROR_STATUS_CODES = {
    CallOperationError.NOT_FOUND: 404,
    CallOperationError.INVALID_STATE: 409,
    CallOperationError.GATEWAY_FAILURE: 502,
}


def _unwrap(result: CallOperationResult):
    if not result.ok:
        raise HTTPException(status_code=ERROR_STATUS_CODES[result.error], detail=result.detail)
    return result.call


@router.get("/active", response_model=List[CallResponse])
async def list_active_calls(call_router: CallRouter = Depends(get_call_router)):
    """Calls that have not ended"""
    return call_router.list_active()


@router.get("/telephony/status")
async def telephony_status(services: Services = Depends(get_services)):
    """Telephony provider diagnostics"""
    settings = services.settings
    return {
        "provider": services.gateway.provider,
        "configured": services.gateway.is_configured,
        "callback_url": settings.telephony_callback_url,
        "incoming_call_url": settings.incoming_call_url,
        "callback_is_local": settings.callback_is_local,
        "tokens_configured": settings.twilio_tokens_configured,
    }


@router.get("/token/{agent_id}", response_model=TokenResponse)
async def get_agent_token(
    agent_id: str,
    services: Services = Depends(get_services),
):
    """
    Issue a Twilio Voice access token for the agent's calling session and
    bind its client identity so answered calls can be handed to it.
    """
    settings = services.settings
    if not services.agents.get(agent_id):
        raise HTTPException(status_code=404, detail="Agent not found")
    if not settings.twilio_tokens_configured:
        raise HTTPException(status_code=503, detail="Telephony tokens not configured")

    identity = f"agent-{agent_id}"
    token = AccessToken(
        settings.twilio_account_sid,
        settings.twilio_api_key_sid,
        settings.twilio_api_key_secret,
        identity=identity,
        ttl=settings.twilio_token_ttl_seconds,
    )
    token.add_grant(
        VoiceGrant(
            outgoing_application_sid=settings.twilio_twiml_app_sid or None,
            incoming_allow=True,
        )
    )

    services.agents.bind_telephony_identity(agent_id, identity)
    logger.info("Issued telephony token", agent_id=agent_id, identity=identity)

    jwt = token.to_jwt()
    if isinstance(jwt, bytes):
        jwt = jwt.decode()
    return TokenResponse(token=jwt, identity=identity, expires_in=settings.twilio_token_ttl_seconds)


@router.get("/agent/{agent_id}", response_model=List[CallResponse])
async def list_calls_by_agent(
    agent_id: str,
    call_router: CallRouter = Depends(get_call_router),
):
    return call_router.list_by_agent(agent_id)


@router.get("/group/{group_id}", response_model=List[CallResponse])
async def list_calls_by_group(
    group_id: str,
    call_router: CallRouter = Depends(get_call_router),
):
    return call_router.list_by_group(group_id)


@router.get("/{call_id}", response_model=CallResponse)
async def get_call(
    call_id: str,
    call_router: CallRouter = Depends(get_call_router),
):
    call = call_router.get_call(call_id)
    if not call:
        raise HTTPException(status_code=404, detail="Call not found")
    return call


@router.post("/{call_id}/answer", response_model=CallResponse)
async def answer_call(
    call_id: str,
    request: AnswerCallRequest,
    call_router: CallRouter = Depends(get_call_router),
):
    """Answer a ringing call assigned to the agent"""
    return _unwrap(await call_router.answer_call(call_id, request.agent_id))


@router.post("/{call_id}/end", response_model=CallResponse)
async def end_call(
    call_id: str,
    request: Optional[EndCallRequest] = None,
    call_router: CallRouter = Depends(get_call_router),
):
    agent_id = request.agent_id if request else None
    return _unwrap(await call_router.end_call(call_id, agent_id))


@router.post("/{call_id}/transfer", response_model=CallResponse)
async def transfer_call(
    call_id: str,
    request: TransferCallRequest,
    call_router: CallRouter = Depends(get_call_router),
):
    """Hand a live call to another available agent"""
    return _unwrap(
        await call_router.transfer_call(call_id, request.from_agent_id, request.to_agent_id)
    )

"""Call webhook handlers for event-envelope deliveries"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError
import structlog

from app.dependencies import Services, get_services
from app.schemas.call import IncomingCallRequest
from app.services.call_router import call_payload
from app.telephony.envelopes import (
    INCOMING_CALL,
    SUBSCRIPTION_VALIDATION,
    event_type_of,
    extract_connection_info,
    extract_numbers,
)

router = APIRouter()
logger = structlog.get_logger()


async def _read_envelopes(request: Request) -> List[Dict[str, Any]]:
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be JSON")

    if isinstance(body, list):
        return [item for item in body if isinstance(item, dict)]
    if isinstance(body, dict):
        return [body]
    raise HTTPException(status_code=400, detail="Unexpected webhook payload")


def _validation_response(envelope: Dict[str, Any]) -> Dict[str, Any]:
    """Echo the subscription validation code"""
    code = (envelope.get("data") or {}).get("validationCode")
    if not code:
        logger.warning("Validation event without a code")
        raise HTTPException(status_code=400, detail="Missing validation code")

    logger.info("Subscription validation handshake")
    return {"validationResponse": code}


async def _route_incoming(services: Services, envelope: Dict[str, Any]) -> Dict[str, Any]:
    data = envelope.get("data")
    if not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Missing call data in incoming call event")

    destination, caller = extract_numbers(data)
    if not destination or not caller:
        raise HTTPException(status_code=400, detail="Missing phone numbers in incoming call event")

    call = await services.router.handle_incoming_call(
        destination, caller, extract_connection_info(data)
    )
    if not call:
        raise HTTPException(status_code=404, detail="No group found for phone number")
    return call_payload(call)


@router.post("/incoming")
async def handle_incoming_call(
    request: Request,
    services: Services = Depends(get_services),
):
    """
    Route an inbound call.

    Accepts event envelopes (subscription validation or IncomingCall) and
    the direct {"phone_number", "caller_number"} form without telephony
    context.
    """
    envelopes = await _read_envelopes(request)
    if not envelopes:
        raise HTTPException(status_code=400, detail="Empty webhook payload")

    first = envelopes[0]
    event_type = event_type_of(first)

    if event_type == SUBSCRIPTION_VALIDATION:
        return _validation_response(first)
    if event_type == INCOMING_CALL:
        return await _route_incoming(services, first)
    if event_type:
        logger.info("Ignoring event on incoming call webhook", event_type=event_type)
        return {"status": "ignored"}

    try:
        direct = IncomingCallRequest.model_validate(first)
    except ValidationError:
        raise HTTPException(
            status_code=400,
            detail="Missing required fields: phone_number, caller_number",
        )

    call = await services.router.handle_incoming_call(direct.phone_number, direct.caller_number)
    if not call:
        raise HTTPException(status_code=404, detail="No group found for phone number")
    return call_payload(call)


@router.post("/events")
async def handle_call_events(
    request: Request,
    services: Services = Depends(get_services),
):
    """Process asynchronous call events; unknown types are acknowledged"""
    envelopes = await _read_envelopes(request)

    processed = 0
    failed = 0
    for envelope in envelopes:
        event_type = event_type_of(envelope)
        if event_type == SUBSCRIPTION_VALIDATION:
            return _validation_response(envelope)

        data = envelope.get("data")
        if not isinstance(data, dict):
            logger.warning("Call event without data", event_type=event_type)
            continue

        if event_type == INCOMING_CALL:
            # One unroutable call must not fail the rest of the batch
            try:
                await _route_incoming(services, envelope)
            except HTTPException as e:
                logger.warning(
                    "Incoming call in batch not routed",
                    event_id=envelope.get("id"),
                    incoming_context=extract_connection_info(data)["incoming_context"],
                    status_code=e.status_code,
                    reason=e.detail,
                )
                failed += 1
                continue
        else:
            await services.events.handle_event(event_type, data)
        processed += 1

    return {"status": "ok", "processed": processed, "failed": failed}

"""Real-time channel for agent and supervisor consoles"""

import asyncio
import json
from typing import Any, Dict

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
import structlog

from app.dependencies import Services
from app.services.notifications import CLOSE, Subscriber

router = APIRouter()
logger = structlog.get_logger()


def _handle_client_message(services: Services, subscriber: Subscriber, message: Dict[str, Any]) -> None:
    bus = services.notifications
    message_type = message.get("type")

    if message_type == "ping":
        bus.send_to(subscriber.id, "pong", {})

    elif message_type == "authenticate_agent":
        agent_id = message.get("agent_id")
        if not agent_id or not services.agents.get(agent_id):
            bus.send_to(subscriber.id, "error", {"message": "Agent not found"})
            return
        bus.authenticate_agent(subscriber.id, agent_id)
        logger.info("Agent console authenticated", subscriber_id=subscriber.id, agent_id=agent_id)
        bus.send_to(subscriber.id, "authenticated", {"role": "agent", "agent_id": agent_id})

    elif message_type == "authenticate_supervisor":
        supervisor_id = message.get("supervisor_id")
        bus.authenticate_supervisor(subscriber.id, supervisor_id)
        logger.info(
            "Supervisor console authenticated",
            subscriber_id=subscriber.id,
            supervisor_id=supervisor_id,
        )
        bus.send_to(
            subscriber.id,
            "authenticated",
            {"role": "supervisor", "supervisor_id": supervisor_id},
        )

    else:
        logger.info("Unknown console message", subscriber_id=subscriber.id, type=message_type)


async def _read(websocket: WebSocket, services: Services, subscriber: Subscriber) -> None:
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except ValueError:
                logger.warning("Invalid console message", subscriber_id=subscriber.id)
                continue
            if isinstance(message, dict):
                _handle_client_message(services, subscriber, message)
    except WebSocketDisconnect:
        pass


async def _write(websocket: WebSocket, subscriber: Subscriber) -> None:
    while True:
        message = await subscriber.queue.get()
        if message is CLOSE:
            await websocket.close(code=1000)
            return
        await websocket.send_json(message)


@router.websocket("/ws")
async def console_channel(websocket: WebSocket):
    """
    One console session.

    Incoming messages are read while queued events are written; the
    session ends when the client disconnects or the bus asks it to close.
    """
    services: Services = websocket.app.state.services
    bus = services.notifications

    await websocket.accept()
    subscriber = bus.connect()
    bus.send_to(subscriber.id, "connected", {"client_id": subscriber.id})

    reader = asyncio.create_task(_read(websocket, services, subscriber))
    writer = asyncio.create_task(_write(websocket, subscriber))
    try:
        done, pending = await asyncio.wait({reader, writer}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        for task in done:
            if not task.cancelled() and task.exception():
                logger.warning(
                    "Console session failed",
                    subscriber_id=subscriber.id,
                    error=str(task.exception()),
                )
    finally:
        reader.cancel()
        writer.cancel()
        bus.disconnect(subscriber.id)

"""
Feishu event callback route.
"""
import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, Request

from ...messaging.events import event_token, is_url_verification, parse_message_event

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/events")
async def receive_event(request: Request) -> Dict[str, Any]:
    """
    Receive a Feishu event callback.

    Message events are handled in the background; the callback is
    acknowledged immediately so the platform does not redeliver it.
    """
    services = request.app.state.services
    tracker = request.app.state.tasks

    if tracker.closing:
        raise HTTPException(status_code=503, detail="Shutting down")

    try:
        payload = await request.json()
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid event body")

    if "encrypt" in payload:
        logger.error("Received encrypted event; disable event encryption in the app console")
        raise HTTPException(status_code=400, detail="Encrypted events are not supported")

    expected_token = services.settings.get_verification_token()
    if expected_token and event_token(payload) != expected_token:
        logger.warning("Rejected event with invalid verification token")
        raise HTTPException(status_code=401, detail="Invalid verification token")

    if is_url_verification(payload):
        return {"challenge": payload.get("challenge", "")}

    message = parse_message_event(payload)
    if message is None:
        return {"status": "ignored"}

    tracker.spawn(
        services.handler.handle(message),
        name=f"handle-{message.message_id}"
    )

    logger.debug(
        f"Accepted message {message.message_id}",
        extra={"session_key": message.chat_id, "message_id": message.message_id}
    )
    return {"status": "accepted"}

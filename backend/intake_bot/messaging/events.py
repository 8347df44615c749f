"""
Feishu event callback parsing.

Turns an ``im.message.receive_v1`` callback body (schema 2.0) into an
InboundMessage. Other event types yield None.
"""
import json
import logging
from typing import Any, Dict, Optional, Tuple

from ..models.inbound import InboundMessage, MessageType

logger = logging.getLogger(__name__)


MESSAGE_RECEIVE_EVENT = "im.message.receive_v1"

URL_VERIFICATION = "url_verification"


def is_url_verification(payload: Dict[str, Any]) -> bool:
    return payload.get("type") == URL_VERIFICATION


def event_token(payload: Dict[str, Any]) -> Optional[str]:
    """Verification token carried by a callback body (either schema)."""
    header = payload.get("header") or {}
    return header.get("token") or payload.get("token")


def _content_fields(message_type: MessageType, data: Dict[str, Any]) -> Tuple[str, Optional[str], Optional[str]]:
    """Returns (text, file_key, file_name) for a decoded message content."""
    if message_type == MessageType.TEXT:
        return data.get("text", ""), None, None

    if message_type == MessageType.FILE:
        file_name = data.get("file_name")
        text = f"上传了文件: {file_name}" if file_name else "上传了文件"
        return text, data.get("file_key"), file_name

    if message_type == MessageType.IMAGE:
        return "[图片]", data.get("image_key"), None

    if message_type == MessageType.AUDIO:
        return "[语音]", data.get("file_key"), None

    if message_type == MessageType.MEDIA:
        return "[视频]", data.get("file_key"), data.get("file_name")

    if message_type == MessageType.STICKER:
        return "[表情包]", None, None

    return data.get("text", ""), None, None


def _decode_content(raw_content: Optional[str], message_id: str) -> Dict[str, Any]:
    if not raw_content:
        return {}

    try:
        decoded = json.loads(raw_content)
    except json.JSONDecodeError as e:
        logger.warning(
            f"Failed to parse message content JSON: {e}",
            extra={"message_id": message_id}
        )
        return {}

    return decoded if isinstance(decoded, dict) else {}


def parse_message_event(payload: Dict[str, Any]) -> Optional[InboundMessage]:
    header = payload.get("header") or {}
    if header.get("event_type") != MESSAGE_RECEIVE_EVENT:
        return None

    event = payload.get("event") or {}
    message = event.get("message") or {}
    sender = event.get("sender") or {}
    sender_ids = sender.get("sender_id") or {}

    chat_id = message.get("chat_id")
    message_id = message.get("message_id")
    if not chat_id or not message_id:
        logger.warning("Message event without chat_id or message_id, ignoring")
        return None

    message_type = MessageType.parse(message.get("message_type"))
    raw_content = message.get("content")

    text, file_key, file_name = _content_fields(
        message_type, _decode_content(raw_content, message_id)
    )

    return InboundMessage(
        chat_id=chat_id,
        sender_id=sender_ids.get("open_id", ""),
        message_id=message_id,
        chat_type=message.get("chat_type", ""),
        message_type=message_type,
        text=text or "",
        file_key=file_key,
        file_name=file_name,
        content_missing=not raw_content,
    )


def with_fetched_content(message: InboundMessage, raw_type: str, raw_content: str) -> InboundMessage:
    """Rebuild a content-less message from content fetched through the API."""
    message_type = MessageType.parse(raw_type) if raw_type else message.message_type
    text, file_key, file_name = _content_fields(
        message_type, _decode_content(raw_content, message.message_id)
    )
    return message.model_copy(update={
        "message_type": message_type,
        "text": text or "",
        "file_key": file_key,
        "file_name": file_name,
        "content_missing": False,
    })


__all__ = [
    'MESSAGE_RECEIVE_EVENT',
    'parse_message_event',
    'with_fetched_content',
    'is_url_verification',
    'event_token',
]

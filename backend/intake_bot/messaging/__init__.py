"""
Chat platform integration.
"""
from .base import ChatPlatform
from .events import event_token, is_url_verification, parse_message_event, with_fetched_content
from .feishu_client import FeishuClient

__all__ = [
    'ChatPlatform',
    'FeishuClient',
    'parse_message_event',
    'with_fetched_content',
    'is_url_verification',
    'event_token',
]

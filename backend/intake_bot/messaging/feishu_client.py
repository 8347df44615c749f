"""
Feishu (Lark) Open API client.

Implements ChatPlatform over plain HTTP with aiohttp. The tenant access
token is cached and refreshed well before it expires; transport errors
(connection failures, timeouts) are retried with exponential backoff, API
errors are not.
"""
import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional, Tuple

import aiohttp
from aiohttp import ClientError, ClientSession, ClientTimeout
from cachetools import TTLCache
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..errors import PlatformAPIError, PlatformAuthError, PlatformError
from .base import ChatPlatform

logger = logging.getLogger(__name__)


# Business codes meaning the tenant token is invalid or expired
TOKEN_INVALID_CODES = frozenset({99991661, 99991663, 99991668})

TOKEN_CACHE_KEY = "tenant_access_token"


def create_retry_decorator(max_attempts: int):
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4.0),
        retry=retry_if_exception_type((ClientError, asyncio.TimeoutError)),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True
    )


class FeishuClient(ChatPlatform):
    """
    Feishu IM client.

    Call ``initialize()`` before use and ``close()`` on shutdown.
    """

    def __init__(
        self,
        app_id: str,
        app_secret: str,
        base_url: str = "https://open.feishu.cn/open-apis",
        timeout: float = 10.0,
        max_retries: int = 3,
        token_ttl_seconds: int = 1800
    ):
        self.app_id = app_id
        self.app_secret = app_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session: Optional[ClientSession] = None
        self.token_cache: TTLCache = TTLCache(maxsize=1, ttl=token_ttl_seconds)
        self._token_lock = asyncio.Lock()

        self._send = create_retry_decorator(max_retries)(self._send_once)

        logger.info(f"FeishuClient configured (base_url={self.base_url}, app_id={app_id})")

    async def initialize(self) -> None:
        if self.session is not None:
            return

        self.session = ClientSession(
            timeout=ClientTimeout(total=self.timeout),
            connector=aiohttp.TCPConnector(limit=50, ttl_dns_cache=300),
            headers={"User-Agent": "IntakeBot/1.0"}
        )
        logger.info("✓ Feishu HTTP session initialized")

    async def close(self) -> None:
        if self.session is not None:
            await self.session.close()
            self.session = None
            logger.info("✓ Feishu HTTP session closed")

    # ===========================
    # Transport
    # ===========================

    async def _send_once(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        form: Optional[Callable[[], aiohttp.FormData]] = None,
        token: Optional[str] = None,
        raw: bool = False
    ) -> Any:
        if self.session is None:
            raise RuntimeError("FeishuClient not initialized. Call initialize() first.")

        headers = {}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        async with self.session.request(
            method=method,
            url=f"{self.base_url}{path}",
            params=params,
            json=json_body,
            data=form() if form else None,
            headers=headers
        ) as response:
            if response.status == 401:
                raise PlatformAuthError(f"{operation}: unauthorized")

            is_json = response.content_type == "application/json"

            if raw and response.status == 200 and not is_json:
                data = await response.read()
                file_name = ""
                if response.content_disposition and response.content_disposition.filename:
                    file_name = response.content_disposition.filename
                return data, file_name

            try:
                body = await response.json(content_type=None)
            except (json.JSONDecodeError, ValueError, aiohttp.ContentTypeError) as e:
                raise PlatformAPIError(
                    operation, code=response.status, msg=f"unparseable response: {e}"
                ) from e

            code = body.get("code", 0) if isinstance(body, dict) else None
            if response.status >= 400 or code != 0:
                msg = body.get("msg", "") if isinstance(body, dict) else ""
                if code in TOKEN_INVALID_CODES:
                    self.token_cache.pop(TOKEN_CACHE_KEY, None)
                    raise PlatformAuthError(f"{operation}: token rejected (code={code}, msg={msg})")
                raise PlatformAPIError(operation, code=code or response.status, msg=msg)

            return body

    async def _get_token(self) -> str:
        token = self.token_cache.get(TOKEN_CACHE_KEY)
        if token:
            return token

        async with self._token_lock:
            token = self.token_cache.get(TOKEN_CACHE_KEY)
            if token:
                return token

            body = await self._send(
                "POST",
                "/auth/v3/tenant_access_token/internal",
                operation="get_tenant_token",
                json_body={"app_id": self.app_id, "app_secret": self.app_secret}
            )

            token = body.get("tenant_access_token")
            if not token:
                raise PlatformAuthError("get_tenant_token: no token in response")

            self.token_cache[TOKEN_CACHE_KEY] = token
            logger.debug(f"Refreshed tenant access token (expire={body.get('expire')}s)")
            return token

    async def _request(self, method: str, path: str, *, operation: str, **kwargs) -> Any:
        token = await self._get_token()
        return await self._send(method, path, operation=operation, token=token, **kwargs)

    @staticmethod
    def _message_id(body: Dict[str, Any]) -> str:
        return (body.get("data") or {}).get("message_id", "")

    # ===========================
    # ChatPlatform
    # ===========================

    async def send_text(self, chat_id: str, text: str) -> str:
        body = await self._request(
            "POST", "/im/v1/messages",
            operation="send_text",
            params={"receive_id_type": "chat_id"},
            json_body={
                "receive_id": chat_id,
                "msg_type": "text",
                "content": json.dumps({"text": text}, ensure_ascii=False),
            }
        )
        return self._message_id(body)

    async def reply_text(self, message_id: str, text: str) -> str:
        body = await self._request(
            "POST", f"/im/v1/messages/{message_id}/reply",
            operation="reply_text",
            json_body={
                "msg_type": "text",
                "content": json.dumps({"text": text}, ensure_ascii=False),
            }
        )
        return self._message_id(body)

    async def send_post(
        self,
        chat_id: str,
        title: str,
        text: str,
        mention_user_id: Optional[str] = None
    ) -> str:
        paragraphs = []
        if mention_user_id:
            paragraphs.append([{"tag": "at", "user_id": mention_user_id}])
        paragraphs.append([{"tag": "text", "text": text}])

        content = {"zh_cn": {"title": title, "content": paragraphs}}

        body = await self._request(
            "POST", "/im/v1/messages",
            operation="send_post",
            params={"receive_id_type": "chat_id"},
            json_body={
                "receive_id": chat_id,
                "msg_type": "post",
                "content": json.dumps(content, ensure_ascii=False),
            }
        )
        message_id = self._message_id(body)
        logger.info(f"Post sent to {chat_id} (message_id={message_id})")
        return message_id

    async def upload_file(self, file_name: str, data: bytes) -> str:
        def build_form() -> aiohttp.FormData:
            form = aiohttp.FormData()
            form.add_field("file_type", "stream")
            form.add_field("file_name", file_name)
            form.add_field(
                "file", data,
                filename=file_name,
                content_type="application/octet-stream"
            )
            return form

        body = await self._request(
            "POST", "/im/v1/files",
            operation="upload_file",
            form=build_form
        )

        file_key = (body.get("data") or {}).get("file_key")
        if not file_key:
            raise PlatformAPIError("upload_file", msg="no file_key in response")
        return file_key

    async def reply_file_in_thread(self, root_message_id: str, file_key: str) -> str:
        body = await self._request(
            "POST", f"/im/v1/messages/{root_message_id}/reply",
            operation="reply_file_in_thread",
            json_body={
                "msg_type": "file",
                "content": json.dumps({"file_key": file_key}),
                "reply_in_thread": True,
            }
        )
        return self._message_id(body)

    async def download_resource(
        self,
        message_id: str,
        file_key: str,
        resource_type: str = "file"
    ) -> Tuple[bytes, str]:
        result = await self._request(
            "GET", f"/im/v1/messages/{message_id}/resources/{file_key}",
            operation="download_resource",
            params={"type": resource_type},
            raw=True
        )

        if not isinstance(result, tuple):
            raise PlatformError("download_resource: expected binary content")

        data, file_name = result
        logger.debug(f"Downloaded resource {file_key} ({len(data)} bytes, name={file_name!r})")
        return data, file_name

    async def get_message(self, message_id: str) -> Tuple[str, str]:
        body = await self._request(
            "GET", f"/im/v1/messages/{message_id}",
            operation="get_message"
        )

        items = (body.get("data") or {}).get("items") or []
        if not items:
            raise PlatformAPIError("get_message", msg=f"message {message_id} not found")

        item = items[0]
        return item.get("msg_type", ""), (item.get("body") or {}).get("content", "")

    async def invite_user(self, chat_id: str, user_id: str) -> None:
        body = await self._request(
            "POST", f"/im/v1/chats/{chat_id}/members",
            operation="invite_user",
            params={"member_id_type": "open_id"},
            json_body={"id_list": [user_id]}
        )

        invalid = (body.get("data") or {}).get("invalid_id_list") or []
        if user_id in invalid:
            raise PlatformAPIError("invite_user", msg=f"invalid member id {user_id}")


__all__ = ['FeishuClient', 'create_retry_decorator']

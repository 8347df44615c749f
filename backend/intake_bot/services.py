"""
Service wiring.

Builds the store, deduper, lock registry, extractor, platform client,
engine, pipeline and handler from settings, and tears them down in
reverse order.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import redis.asyncio as redis
from redis.asyncio import Redis

from .config.settings import Settings
from .engine.conversation_engine import DEFAULT_ESCALATION_HINT, ConversationEngine
from .extraction import create_extractor
from .extraction.base import FieldExtractor
from .handlers.escalation import EscalationPipeline
from .handlers.message_handler import MessageHandler
from .messaging.base import ChatPlatform
from .messaging.feishu_client import FeishuClient
from .models.schema import FieldSchema
from .session import create_deduper, create_session_store
from .session.deduper import MessageDeduper
from .session.session_lock import SessionLockRegistry
from .session.session_store import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class IntakeServices:
    settings: Settings
    schema: FieldSchema
    store: SessionStore
    deduper: MessageDeduper
    locks: SessionLockRegistry
    extractor: FieldExtractor
    platform: ChatPlatform
    engine: ConversationEngine
    pipeline: EscalationPipeline
    handler: MessageHandler
    redis_client: Optional[Redis] = None

    async def close(self) -> None:
        for name, resource in (
            ("platform", self.platform),
            ("extractor", self.extractor),
            ("deduper", self.deduper),
            ("store", self.store),
        ):
            try:
                await resource.close()
            except Exception as e:
                logger.error(f"Error closing {name}: {e}")

        if self.redis_client is not None:
            await self.redis_client.aclose()
            logger.info("✓ Closed Redis connection pool")


def _build_redis_client(settings: Settings) -> Redis:
    pool = redis.ConnectionPool.from_url(
        settings.redis_url,
        max_connections=settings.redis_max_connections,
        socket_timeout=settings.redis_socket_timeout,
        socket_connect_timeout=settings.redis_socket_timeout,
        decode_responses=True,
        socket_keepalive=True
    )
    return Redis(connection_pool=pool)


async def build_services(
    settings: Settings,
    platform: Optional[ChatPlatform] = None,
    extractor: Optional[FieldExtractor] = None
) -> IntakeServices:
    """
    Build every collaborator from settings.

    ``platform`` and ``extractor`` can be injected (tests, alternative
    transports); otherwise they are built from settings.
    """
    schema = settings.get_field_schema()
    redis_client: Optional[Redis] = None

    if settings.session_store_type == "redis":
        redis_client = _build_redis_client(settings)
        store = create_session_store(
            "redis",
            redis_url=settings.redis_url,
            key_prefix=settings.session_key_prefix,
            ttl_seconds=settings.session_ttl_seconds,
            client=redis_client,
        )
        deduper = create_deduper(
            "redis",
            redis_url=settings.redis_url,
            key_prefix=settings.dedup_key_prefix,
            ttl_seconds=settings.dedup_ttl_seconds,
            client=redis_client,
        )
    else:
        store = create_session_store("in_memory", ttl_seconds=settings.session_ttl_seconds)
        deduper = create_deduper("in_memory", ttl_seconds=settings.dedup_ttl_seconds)

    locks = SessionLockRegistry(
        idle_ttl_seconds=settings.session_lock_idle_ttl_seconds,
        max_idle=settings.session_lock_max_idle,
    )

    if extractor is None:
        extractor = create_extractor(settings, schema)

    if platform is None:
        feishu = FeishuClient(
            app_id=settings.feishu_app_id,
            app_secret=settings.get_feishu_app_secret(),
            base_url=settings.feishu_base_url,
            timeout=settings.feishu_timeout_seconds,
            max_retries=settings.feishu_max_retries,
        )
        await feishu.initialize()
        platform = feishu

    escalation_hint = (settings.escalation_keywords or [DEFAULT_ESCALATION_HINT])[0]

    engine = ConversationEngine(
        store=store,
        extractor=extractor,
        schema=schema,
        suggestion_prefixes=settings.suggestion_prefixes,
        escalation_hint=escalation_hint,
        extractor_timeout=settings.extractor_timeout_seconds,
    )

    pipeline = EscalationPipeline(
        platform=platform,
        store=store,
        schema=schema,
        escalation_chat_id=settings.escalation_chat_id,
        step_timeout=settings.external_call_timeout_seconds,
    )

    handler = MessageHandler(
        engine=engine,
        pipeline=pipeline,
        store=store,
        deduper=deduper,
        locks=locks,
        platform=platform,
        escalation_keywords=settings.escalation_keywords,
        clear_keywords=settings.clear_context_keywords,
        send_timeout=settings.external_call_timeout_seconds,
    )

    logger.info(
        f"✓ Services built (store={type(store).__name__}, "
        f"extractor={type(extractor).__name__}, platform={type(platform).__name__})"
    )

    return IntakeServices(
        settings=settings,
        schema=schema,
        store=store,
        deduper=deduper,
        locks=locks,
        extractor=extractor,
        platform=platform,
        engine=engine,
        pipeline=pipeline,
        handler=handler,
        redis_client=redis_client,
    )


__all__ = ['IntakeServices', 'build_services']

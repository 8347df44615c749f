"""
Session management package.
Session persistence, message deduplication and per-session locking.
"""
from .deduper import InMemoryMessageDeduper, MessageDeduper, RedisMessageDeduper
from .in_memory_session_store import InMemorySessionStore
from .redis_session_store import RedisSessionStore
from .session_lock import SessionLockHandle, SessionLockRegistry
from .session_store import SessionStore


def create_session_store(
    store_type: str = "in_memory",
    **kwargs
) -> SessionStore:
    """
    Factory function to create session store.

    Args:
        store_type: Type of store ('in_memory' or 'redis')
        **kwargs: Store-specific configuration

    Examples:
        store = create_session_store('in_memory', ttl_seconds=600)

        store = create_session_store(
            'redis',
            redis_url='redis://localhost:6379/0',
            key_prefix='intake:conv'
        )
    """
    if store_type == "in_memory":
        return InMemorySessionStore(**kwargs)

    elif store_type == "redis":
        return RedisSessionStore(**kwargs)

    else:
        raise ValueError(f"Unknown store type: {store_type}")


def create_deduper(
    store_type: str = "in_memory",
    **kwargs
) -> MessageDeduper:
    """Factory function to create a message deduper ('in_memory' or 'redis')."""
    if store_type == "in_memory":
        return InMemoryMessageDeduper(**kwargs)

    elif store_type == "redis":
        return RedisMessageDeduper(**kwargs)

    else:
        raise ValueError(f"Unknown store type: {store_type}")


__all__ = [
    # Core
    'SessionStore',
    'MessageDeduper',
    'SessionLockRegistry',
    'SessionLockHandle',

    # Implementations
    'InMemorySessionStore',
    'RedisSessionStore',
    'InMemoryMessageDeduper',
    'RedisMessageDeduper',

    # Factories
    'create_session_store',
    'create_deduper',
]

"""
Best-effort execution of external calls.

Used wherever a failing external call must degrade to a default value
instead of aborting the surrounding operation: field extraction, chat
invitation, per-file relay, user notification.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


@dataclass
class StepResult(Generic[T]):
    """
    Outcome of a best-effort step.

    Attributes:
        step: Step name used in logs
        success: Whether the call completed without error
        value: Call result, or the default on failure
        error: Exception raised by the call (None on success)
        duration: Wall time in seconds
    """
    step: str
    success: bool
    value: Optional[T] = None
    error: Optional[BaseException] = None
    duration: float = 0.0
    context: Dict[str, Any] = field(default_factory=dict)

    @property
    def timed_out(self) -> bool:
        return isinstance(self.error, asyncio.TimeoutError)


async def best_effort(
    step: str,
    call: Callable[[], Awaitable[T]],
    timeout: Optional[float] = None,
    default: Optional[T] = None,
    **context: Any
) -> StepResult[T]:
    """
    Run ``call()`` under a deadline and never raise its errors.

    Args:
        step: Step name for logging
        call: Zero-argument factory returning the awaitable to run
        timeout: Deadline in seconds (None for no deadline)
        default: Value reported when the call fails
        **context: Extra identifiers added to log records

    Returns:
        StepResult with the call's value, or ``default`` and the error

    Cancellation of the calling task is propagated, not converted into a
    failed step.
    """
    log_context = {"step": step, **context}
    start_time = time.monotonic()

    logger.debug(f"Step started: {step}", extra=log_context)

    try:
        value = await asyncio.wait_for(call(), timeout=timeout)

    except asyncio.CancelledError:
        raise

    except asyncio.TimeoutError as e:
        duration = time.monotonic() - start_time
        logger.warning(
            f"Step timed out: {step} (timeout: {timeout}s)",
            extra={**log_context, "duration_seconds": duration, "status": "timeout"}
        )
        return StepResult(step=step, success=False, value=default, error=e,
                          duration=duration, context=context)

    except Exception as e:
        duration = time.monotonic() - start_time
        logger.warning(
            f"Step failed: {step} (duration: {duration:.3f}s, error: {e})",
            extra={**log_context, "duration_seconds": duration, "status": "error"},
            exc_info=True
        )
        return StepResult(step=step, success=False, value=default, error=e,
                          duration=duration, context=context)

    duration = time.monotonic() - start_time
    logger.info(
        f"Step completed: {step} (duration: {duration:.3f}s)",
        extra={**log_context, "duration_seconds": duration, "status": "success"}
    )
    return StepResult(step=step, success=True, value=value,
                      duration=duration, context=context)


__all__ = ['StepResult', 'best_effort']

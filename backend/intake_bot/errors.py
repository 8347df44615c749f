"""
Exception hierarchy shared by the intake service.

Persistence failures (StoreError) are fail-closed and always propagate to the
caller. Extraction and most platform failures are caught by the callers that
treat them as best-effort.
"""
from typing import Optional


class IntakeError(Exception):
    """Base exception for the intake service."""
    pass


class StoreError(IntakeError):
    """Session store or dedup store transport failure."""
    pass


class ExtractionError(IntakeError):
    """Field extractor failed to produce a result."""
    pass


class PlatformError(IntakeError):
    """Chat platform call failed."""
    pass


class PlatformAuthError(PlatformError):
    """Chat platform rejected the application credentials."""
    pass


class PlatformAPIError(PlatformError):
    """Chat platform returned a non-zero business code."""

    def __init__(self, operation: str, code: Optional[int] = None, msg: str = ""):
        self.operation = operation
        self.code = code
        self.msg = msg
        super().__init__(f"{operation} failed: code={code}, msg={msg}")


class EscalationError(IntakeError):
    """Mandatory hand-off step failed; the case was not submitted."""
    pass


__all__ = [
    'IntakeError',
    'StoreError',
    'ExtractionError',
    'PlatformError',
    'PlatformAuthError',
    'PlatformAPIError',
    'EscalationError'
]

"""
Error handling utilities for pgleasePy.
Every error keeps the root cause and a trace of the calls that wrapped it.
"""

import inspect
from types import FrameType
from typing import List, Optional


class PgleaseError(Exception):
    """
    Base error class with trace information.
    Wrapping another PgleaseError keeps its original cause and extends the trace.
    """

    def __init__(self, trace: str, original: Exception):
        """Initialize PgleaseError with original error and trace."""
        traceWithFunction = trace
        current_frame = inspect.currentframe()

        frame: Optional[FrameType] = None
        if current_frame is not None:
            frame = current_frame.f_back

        if frame:
            traceWithFunction = f"{frame.f_code.co_name} - {trace}"

        self.original: Exception
        self.trace: List[str]
        if isinstance(original, PgleaseError):
            self.original = original.original
            self.trace = original.trace + [traceWithFunction]
        else:
            self.original = original
            self.trace = [traceWithFunction]

        super().__init__(str(self.original))

    def __str__(self) -> str:
        """Return formatted error message with trace."""
        return f"{str(self.original)} | Trace: {', '.join(self.trace)}"


class DbConnectionError(PgleaseError):
    """Backend unreachable, bad credentials or invalid connection parameters."""


class QueryError(PgleaseError):
    """Malformed SQL or a driver-reported failure while running a statement."""


class TransactionError(PgleaseError):
    """Transaction statement rejected, or commit/rollback without an active transaction."""


class PoolError(PgleaseError):
    """No connection could be leased from the pool."""

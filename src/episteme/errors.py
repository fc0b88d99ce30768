"""Error taxonomy for the memory subsystem.

- OracleError: a generation or embedding call failed, timed out, or
  returned output that could not be parsed
- ValidationError: structured oracle output failed schema or range checks
  and no sane default exists
- StoreError: the persistent store rejected a read or write
"""

from __future__ import annotations


class EpistemeError(Exception):
    """Base class for memory subsystem errors."""

    pass


class OracleError(EpistemeError):
    """Generation or embedding oracle call failed."""

    pass


class OracleTimeoutError(OracleError):
    """Oracle call exceeded its time budget."""

    pass


class ValidationError(EpistemeError):
    """Structured oracle output failed validation."""

    def __init__(self, message: str, payload: object | None = None):
        super().__init__(message)
        self.payload = payload


class StoreError(EpistemeError):
    """Persistent store operation failed."""

    pass

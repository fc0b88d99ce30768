"""Oracle contracts consumed by the memory core.

The generation and embedding providers are black boxes. The core only
depends on these protocols, so tests and alternative providers can be
swapped in freely.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Awaitable, Protocol, TypeVar

import numpy as np

from episteme.errors import OracleTimeoutError

T = TypeVar("T")


class EmbeddingTaskType(str, Enum):
    """Closed set of embedding intents; providers may embed differently per task."""

    RETRIEVAL_QUERY = "RETRIEVAL_QUERY"
    RETRIEVAL_DOCUMENT = "RETRIEVAL_DOCUMENT"
    SEMANTIC_SIMILARITY = "SEMANTIC_SIMILARITY"
    CLASSIFICATION = "CLASSIFICATION"
    CLUSTERING = "CLUSTERING"


class GenerationOracle(Protocol):
    """Text generation provider with structured-output support."""

    async def generate(
        self,
        messages: list[dict[str, Any]],
        schema: dict[str, Any] | None = None,
    ) -> str | dict[str, Any]:
        """Return text, or a parsed JSON object when a schema is given."""
        ...


class EmbeddingOracle(Protocol):
    """Embedding provider returning fixed-dimension unit vectors."""

    async def embed(self, text: str, task_type: EmbeddingTaskType) -> np.ndarray:
        """Embed text for the given task."""
        ...


async def bounded(call: Awaitable[T], timeout: float, what: str) -> T:
    """Await an oracle call with a time budget.

    Raises:
        OracleTimeoutError: If the call does not finish within timeout seconds
    """
    try:
        return await asyncio.wait_for(call, timeout=timeout)
    except asyncio.TimeoutError as e:
        raise OracleTimeoutError(f"{what} timed out after {timeout:.1f}s") from e

"""Embedding client for the Gemini embedContent REST API.

Vectors are truncated server-side to the configured dimensionality via
outputDimensionality; truncated Gemini vectors are not unit length, so every
result is L2-normalized here before it reaches the memory core.
"""

from __future__ import annotations

import numpy as np
import httpx

from episteme import http
from episteme.ai.oracle import EmbeddingTaskType
from episteme.config import OracleConfig
from episteme.errors import OracleError
from episteme.memory.scoring import l2_normalize


class EmbeddingClient:
    """Client producing fixed-dimension unit vectors."""

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
    DEFAULT_MODEL = "gemini-embedding-001"

    def __init__(
        self,
        api_key: str,
        model: str | None = None,
        dimension: int = 768,
        base_url: str | None = None,
        timeout: float = 30.0,
    ):
        """Initialize the embedding client.

        Args:
            api_key: Provider API key
            model: Embedding model (default: gemini-embedding-001)
            dimension: Output dimensionality D shared by every stored vector
            base_url: Optional API base override
            timeout: Transport timeout in seconds
        """
        self.model = model or self.DEFAULT_MODEL
        self.dimension = dimension
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self._headers = {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        }
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(cls, config: OracleConfig) -> EmbeddingClient:
        """Build a client from oracle configuration."""
        return cls(
            api_key=config.embedding_api_key,
            model=config.embedding_model,
            dimension=config.embedding_dim,
            base_url=config.embedding_endpoint,
            timeout=config.timeout,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def embed(self, text: str, task_type: EmbeddingTaskType) -> np.ndarray:
        """Embed text for a task.

        Args:
            text: Content to embed
            task_type: Intent of the embedding (query, document, similarity...)

        Returns:
            Unit-length vector of length `dimension`

        Raises:
            OracleError: On transport failure or a malformed vector
        """
        client = await self._get_client()
        try:
            data = await http.request(
                "POST",
                f"{self.base_url}/models/{self.model}:embedContent",
                headers=self._headers,
                json_data={
                    "model": f"models/{self.model}",
                    "content": {"parts": [{"text": text}]},
                    "taskType": EmbeddingTaskType(task_type).value,
                    "outputDimensionality": self.dimension,
                },
                timeout=self.timeout,
                client=client,
            )
        except http.HTTPError as e:
            raise OracleError(f"Embedding API error: {e}") from e

        values = (data.get("embedding") or {}).get("values")
        if not values:
            raise OracleError("Embedding API returned no values")
        if len(values) != self.dimension:
            raise OracleError(
                f"Embedding dimension mismatch: expected {self.dimension}, got {len(values)}"
            )

        try:
            return l2_normalize(values)
        except ValueError as e:
            raise OracleError(f"Embedding API returned a degenerate vector: {e}") from e

"""Generation oracle client.

Speaks the OpenAI-compatible chat completions API. With a JSON schema the
request asks for `json_schema` structured output and the reply is parsed into
a dict, tolerating markdown fences and prose around the object.
"""

from __future__ import annotations

import json
import re
from typing import Any

import httpx

from episteme import http
from episteme.config import OracleConfig
from episteme.errors import OracleError


class GenerationClient:
    """Client for an OpenAI-compatible chat completions endpoint.

    Works against Groq, OpenAI, xAI and Gemini's OpenAI-compatible surface;
    only the endpoint, key and model differ.
    """

    DEFAULT_MAX_TOKENS = 1024

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        model: str,
        max_tokens: int | None = None,
        timeout: float = 30.0,
    ):
        """Initialize the generation client.

        Args:
            endpoint: Full chat completions URL
            api_key: Bearer token for the provider
            model: Model identifier
            max_tokens: Optional max_tokens override (default: 1024)
            timeout: Transport timeout in seconds
        """
        self.endpoint = endpoint
        self.model = model
        self.max_tokens = max_tokens or self.DEFAULT_MAX_TOKENS
        self.timeout = timeout
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(cls, config: OracleConfig) -> GenerationClient:
        """Build a client from oracle configuration."""
        return cls(
            endpoint=config.generation_endpoint,
            api_key=config.generation_api_key,
            model=config.generation_model,
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

    async def generate(
        self,
        messages: list[dict[str, Any]],
        schema: dict[str, Any] | None = None,
        schema_name: str = "response",
    ) -> str | dict[str, Any]:
        """Generate a completion.

        Args:
            messages: Chat messages ({"role", "content"})
            schema: Optional JSON schema; when given the provider is asked for
                constrained output and the parsed object is returned
            schema_name: Name attached to the schema in the request

        Returns:
            Response text, or parsed JSON object when schema is given

        Raises:
            OracleError: On transport failure, empty or unparseable output
        """
        payload: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": messages,
        }
        if schema is not None:
            payload["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": schema_name,
                    "strict": True,
                    "schema": schema,
                },
            }

        text = await self._request(payload)
        if schema is None:
            return text

        try:
            return self._parse_json_response(text)
        except json.JSONDecodeError as e:
            raise OracleError(f"Unparseable structured output: {e}") from e

    async def _request(self, payload: dict[str, Any]) -> str:
        """Send a chat completion request and return the message content."""
        client = await self._get_client()
        try:
            data = await http.request(
                "POST",
                self.endpoint,
                headers=self._headers,
                json_data=payload,
                timeout=self.timeout,
                client=client,
            )
        except http.HTTPError as e:
            raise OracleError(f"Generation API error: {e}") from e

        choices = data.get("choices") or []
        if not choices:
            raise OracleError("Empty response from generation API")

        content = (choices[0].get("message") or {}).get("content")
        if not content:
            raise OracleError("Generation API returned no content")
        return content

    def _parse_json_response(self, text: str) -> dict:
        """Parse JSON from a response, handling markdown code blocks and prose."""
        text = text.strip()

        # Try direct parse first (bare JSON)
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            pass

        # Extract from fenced code block (```json ... ``` with possible trailing text)
        fence_match = re.search(r"```(?:json)?\s*\n(.*?)```", text, re.DOTALL)
        if fence_match:
            return json.loads(fence_match.group(1).strip())

        # Extract first JSON object embedded in prose
        brace_match = re.search(r"\{.*\}", text, re.DOTALL)
        if brace_match:
            return json.loads(brace_match.group(0))

        raise json.JSONDecodeError("No JSON found in response", text, 0)

"""HTTP helper shared by the oracle clients.

Thin wrapper over httpx so that every provider call goes through one place
for error shaping and timeouts.
"""

from __future__ import annotations

import httpx


class HTTPError(Exception):
    """Non-2xx response or transport failure."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


async def request(
    method: str,
    url: str,
    headers: dict | None = None,
    params: dict | None = None,
    json_data: dict | None = None,
    timeout: float = 30.0,
    client: httpx.AsyncClient | None = None,
) -> dict:
    """Make an HTTP request and return the parsed JSON body.

    Args:
        method: HTTP method (GET, POST, PUT, DELETE, etc.)
        url: Full URL to request
        headers: Optional headers dict
        params: Optional query parameters
        json_data: Optional JSON body
        timeout: Request timeout in seconds
        client: Optional shared client; a one-shot client is used otherwise

    Returns:
        Parsed JSON response as dict

    Raises:
        HTTPError: On HTTP errors or network failures
    """
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=timeout)

    try:
        response = await client.request(
            method,
            url,
            headers=headers,
            params=params,
            json=json_data,
            timeout=timeout,
        )
    except httpx.HTTPError as e:
        raise HTTPError(f"{method} {url} failed: {e}") from e
    finally:
        if owns_client:
            await client.aclose()

    if response.is_error:
        raise HTTPError(f"HTTP {response.status_code}: {response.text}", status=response.status_code)

    # Handle empty responses
    if response.status_code == 204 or not response.content:
        return {}

    try:
        return response.json()
    except ValueError as e:
        raise HTTPError(f"Invalid JSON from {url}: {e}", status=response.status_code) from e

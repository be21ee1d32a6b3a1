"""
HTTP client for streaming chat completions.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx

from .exceptions import TransportRejected
from .models import LLMMessage, ProviderType

logger = logging.getLogger(__name__)


class LLMClient:
    """HTTP client issuing one streaming completion request per turn."""

    def __init__(
        self,
        config: dict[str, Any],
        api_key: str,
        http_config: dict[str, Any] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        # Validate required configuration parameters
        required_keys = ["base_url", "chat_path", "model"]
        for key in required_keys:
            if key not in config:
                raise ValueError(
                    f"Required LLM configuration parameter '{key}' not found. "
                    "All LLM parameters must be explicitly configured."
                )

        self.config: dict[str, Any] = config
        self.api_key: str = api_key
        self.provider_type = ProviderType.detect(config["base_url"])

        http_config = http_config or {}
        timeout = httpx.Timeout(
            connect=http_config.get("connect_timeout", 10.0),
            read=http_config.get("read_timeout", 60.0),
            write=http_config.get("write_timeout", 10.0),
            pool=http_config.get("pool_timeout", 10.0),
        )
        self.client: httpx.AsyncClient = httpx.AsyncClient(
            base_url=config["base_url"],
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
            transport=transport,
        )

    @property
    def model(self) -> str:
        return self.config["model"]

    def build_payload(self, messages: list[LLMMessage]) -> dict[str, Any]:
        """Build the JSON body for a streaming completion request."""
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [message.to_dict() for message in messages],
            "stream": True,
        }
        payload.update(self.config.get("request_params") or {})
        return payload

    @asynccontextmanager
    async def stream_chat(
        self, messages: list[LLMMessage]
    ) -> AsyncIterator[AsyncIterator[bytes]]:
        """
        Open a streaming completion and yield its raw body chunks.

        The response is always closed when the context exits, including when
        the consumer stops reading early or is cancelled.

        Raises:
            TransportRejected: If the request fails, the status is not 2xx,
                or the response carries no body.
        """
        payload = self.build_payload(messages)
        request = self.client.build_request(
            "POST", self.config["chat_path"], json=payload
        )

        try:
            response = await self.client.send(request, stream=True)
        except httpx.HTTPError as e:
            logger.error(f"HTTP error opening stream: {e}")
            raise TransportRejected(
                f"HTTP error: {e!s}",
                provider=self.provider_type.value,
                model=self.model,
            ) from e

        try:
            if not response.is_success:
                error_text = await response.aread()
                raise TransportRejected(
                    f"Streaming API error {response.status_code}: "
                    f"{error_text.decode('utf-8', errors='replace')}",
                    provider=self.provider_type.value,
                    model=self.model,
                    status_code=response.status_code,
                )

            if (
                response.status_code == httpx.codes.NO_CONTENT
                or response.headers.get("content-length") == "0"
            ):
                raise TransportRejected(
                    "Response carried no streamable body",
                    provider=self.provider_type.value,
                    model=self.model,
                    status_code=response.status_code,
                )

            content_type = response.headers.get("content-type", "")
            if "event-stream" not in content_type:
                logger.debug(f"Unexpected streaming content-type: {content_type}")

            # Raw network chunks; the assembler decodes UTF-8 across splits
            yield response.aiter_bytes()
        finally:
            await response.aclose()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> LLMClient:
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

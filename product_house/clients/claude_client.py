"""
Completion service client for the Anthropic Messages API.

Every failure (missing key, transport error, timeout, non-2xx response,
malformed body) surfaces as ``UpstreamServiceError``. Nothing is retried;
a transient failure needs the user to act again.
"""

from typing import Any, Optional, Sequence

import httpx
from pydantic import BaseModel

from product_house.core.config import AnthropicSettings, settings
from product_house.core.constants import MASTERPLAN_MAX_TOKENS, REFINEMENT_TEMPERATURE
from product_house.core.exceptions import UpstreamServiceError
from product_house.core.logging import get_logger
from product_house.domain.context import ConversationMessage
from product_house.masterplan.prompts import (
    DEFAULT_MASTERPLAN_SYSTEM_PROMPT,
    REVIEW_SYSTEM_PROMPT,
    SECTION_REFINEMENT_SYSTEM_PROMPT,
    refinement_request,
)

logger = get_logger(__name__)


class CompletionResponse(BaseModel):
    """Text completion returned by the service."""

    id: str
    content: str
    stop_reason: Optional[str] = None
    model: str


class ClaudeClient:
    """
    Async client for the completion service.

    Args:
        config: Connection settings (defaults to application settings)
        transport: Optional httpx transport, used to stub the wire in tests
    """

    def __init__(
        self,
        config: Optional[AnthropicSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config or settings.anthropic
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

        if not self.config.api_key:
            logger.warning("Anthropic API key is not set")

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url.rstrip("/"),
                timeout=httpx.Timeout(self.config.timeout),
                headers={
                    "Content-Type": "application/json",
                    "x-api-key": self.config.api_key,
                    "anthropic-version": self.config.api_version,
                },
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def format_messages(messages: Sequence[ConversationMessage]) -> list[dict[str, str]]:
        """Convert conversation messages to the API's message shape."""
        return [{"role": m.role.value, "content": m.content} for m in messages]

    async def complete(
        self,
        messages: Sequence[ConversationMessage],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        system: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> CompletionResponse:
        """
        Send a completion request.

        Args:
            messages: Conversation so far
            max_tokens: Response token cap (defaults to settings)
            temperature: Sampling temperature (defaults to settings)
            system: Optional system prompt
            timeout: Per-call timeout in seconds, overriding the client default

        Returns:
            CompletionResponse with the concatenated text content

        Raises:
            UpstreamServiceError: If the call fails for any reason
        """
        if not self.config.api_key:
            raise UpstreamServiceError("API key is not configured", provider_status=401)

        payload: dict[str, Any] = {
            "model": self.config.model,
            "max_tokens": max_tokens or self.config.max_tokens,
            "temperature": self.config.temperature if temperature is None else temperature,
            "messages": self.format_messages(messages),
        }
        if system:
            payload["system"] = system.strip()

        client = await self._get_client()
        request_kwargs: dict[str, Any] = {"json": payload}
        if timeout is not None:
            request_kwargs["timeout"] = httpx.Timeout(timeout)

        try:
            response = await client.post("/messages", **request_kwargs)
            response.raise_for_status()
            data = response.json()

        except httpx.HTTPStatusError as e:
            message = self._error_message(e.response)
            logger.error(
                "Completion request failed",
                status_code=e.response.status_code,
                error=message,
            )
            raise UpstreamServiceError(message, provider_status=e.response.status_code) from e

        except httpx.TimeoutException as e:
            logger.error("Completion request timed out", error=str(e))
            raise UpstreamServiceError("Request timed out", details={"timeout": True}) from e

        except httpx.RequestError as e:
            logger.error("Completion request error", error=str(e))
            raise UpstreamServiceError(f"Request failed: {e}") from e

        except ValueError as e:
            raise UpstreamServiceError("Response body is not valid JSON") from e

        content = "".join(
            block.get("text", "")
            for block in data.get("content", [])
            if block.get("type") == "text"
        )
        if not content:
            raise UpstreamServiceError("No text content in response")

        return CompletionResponse(
            id=data.get("id", ""),
            content=content,
            stop_reason=data.get("stop_reason"),
            model=data.get("model", self.config.model),
        )

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return f"HTTP {response.status_code}: {response.text}"
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        return f"HTTP {response.status_code}"

    async def generate_masterplan(
        self,
        messages: Sequence[ConversationMessage],
        system_prompt: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Generate masterplan Markdown from a conversation.

        Uses the ten-section default prompt unless ``system_prompt`` is given.
        """
        response = await self.complete(
            messages,
            max_tokens=MASTERPLAN_MAX_TOKENS,
            system=system_prompt or DEFAULT_MASTERPLAN_SYSTEM_PROMPT,
            timeout=timeout,
        )
        return response.content

    async def refine_section(
        self,
        section_title: str,
        content: str,
        instruction: str,
        timeout: Optional[float] = None,
    ) -> str:
        """Ask for a rewrite of one section; returns only the new content."""
        response = await self.complete(
            [ConversationMessage(role="user", content=refinement_request(section_title, content, instruction))],
            temperature=REFINEMENT_TEMPERATURE,
            system=SECTION_REFINEMENT_SYSTEM_PROMPT,
            timeout=timeout,
        )
        return response.content.strip()

    async def review_masterplan(self, request_text: str, timeout: Optional[float] = None) -> str:
        """Ask for bulk section suggestions; returns the raw response text."""
        response = await self.complete(
            [ConversationMessage(role="user", content=request_text)],
            system=REVIEW_SYSTEM_PROMPT,
            timeout=timeout,
        )
        return response.content

    async def __aenter__(self) -> "ClaudeClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

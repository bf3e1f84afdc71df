"""OpenAI-compatible chat provider.

Uses the openai SDK, so any vendor exposing the chat-completions API
(OpenAI, DeepSeek, local gateways) works by changing ``base_url``.
"""

import time
from dataclasses import dataclass
from typing import Optional

import structlog
from openai import AsyncOpenAI

logger = structlog.get_logger()


@dataclass
class ChatResponse:
    """Response from a chat completion."""

    content: str
    model: str
    input_tokens: int
    output_tokens: int
    duration_ms: int


class ChatProvider:
    """Thin async wrapper over ``chat.completions.create``."""

    def __init__(
        self,
        model: str,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: float = 20.0,
    ) -> None:
        # No SDK retries: a slow classifier must fail fast, not stall the turn
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )
        self.model = model

    async def chat(
        self,
        messages: list[dict[str, str]],
        model: Optional[str] = None,
        max_tokens: int = 384,
        temperature: float = 0.0,
    ) -> ChatResponse:
        """Send chat completion request."""
        used_model = model or self.model
        start = time.monotonic()

        response = await self.client.chat.completions.create(
            model=used_model,
            messages=messages,
            max_tokens=max_tokens,
            temperature=temperature,
        )

        duration_ms = int((time.monotonic() - start) * 1000)
        choice = response.choices[0]
        usage = response.usage

        return ChatResponse(
            content=choice.message.content or "",
            model=response.model or used_model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            duration_ms=duration_ms,
        )

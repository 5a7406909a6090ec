"""Gateway to the generative text model."""

import logging
from dataclasses import dataclass

import anthropic
from anthropic import AsyncAnthropic

from advanceweekly.config import settings
from advanceweekly.errors import LLMError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelParams:
    """Per-request generation parameters."""

    model: str = settings.llm_model
    temperature: float = settings.llm_temperature
    max_tokens: int = settings.llm_max_tokens
    system: str | None = None


class LLMGateway:
    """Synchronous-per-call text generation. Never retries on its own."""

    def __init__(self, client: AsyncAnthropic | None = None):
        self._client = client

    @property
    def client(self) -> AsyncAnthropic:
        """Lazily initialize the Anthropic client."""
        if self._client is None:
            self._client = AsyncAnthropic(
                api_key=settings.anthropic_api_key,
                max_retries=0,
                timeout=settings.llm_timeout_seconds,
            )
        return self._client

    async def generate(self, prompt: str, params: ModelParams | None = None) -> str:
        """Generate text for ``prompt``.

        Raises:
            LLMError: ``transient`` is set for connection failures, rate limits
                and server-side errors, which callers may retry.
        """
        params = params or ModelParams()
        request = {
            "model": params.model,
            "max_tokens": params.max_tokens,
            "temperature": params.temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if params.system:
            request["system"] = params.system

        try:
            response = await self.client.messages.create(**request)
        except (anthropic.APIConnectionError, anthropic.RateLimitError, anthropic.InternalServerError) as exc:
            raise LLMError(f"generation failed: {exc}", transient=True) from exc
        except anthropic.APIStatusError as exc:
            raise LLMError(
                f"generation rejected ({exc.status_code}): {exc.message}",
                transient=exc.status_code >= 500,
            ) from exc

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        ).strip()
        if not text:
            raise LLMError("model returned an empty response", transient=True)
        return text


# Global singleton instance
llm_gateway = LLMGateway()

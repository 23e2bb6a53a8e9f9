"""Streaming backend talking directly to an OpenAI-compatible provider."""

from collections.abc import AsyncIterator

import openai
from openai import AsyncOpenAI

from orchestrator.exceptions import ProviderTimeoutError, ProviderTransportError
from orchestrator.log import get_logger
from orchestrator.models import DoneEvent, GenerationRequest, StreamEvent, TokenEvent

from .base import StreamingBackend

logger = get_logger(__name__)


class OpenAIStreamingBackend(StreamingBackend):
    """Streams chat completions token by token.

    The request's ``provider`` is used as the model name unless it is one of
    the product-level provider ids, in which case the configured default
    model is used.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 60.0,
        model: str = "gpt-4o-mini",
        max_retries: int = 3,
    ) -> None:
        """Initialize the streaming backend.

        Args:
            api_key: OpenAI API key
            base_url: OpenAI API base URL
            timeout: Request timeout in seconds
            model: Default model to use
            max_retries: Maximum number of retries for failed requests
        """
        self._model = model
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            max_retries=max_retries,
        )

        logger.info(
            f"Initialized {self.__class__.__name__} with {base_url=}, {model=}"
        )

    @property
    def model(self) -> str:
        """Get the default model name."""
        return self._model

    def model_for(self, provider: str) -> str:
        """Model name used for ``provider``."""
        if provider.startswith(("gpt-", "o1", "o3", "o4")):
            return provider
        return self._model

    async def stream_generation(
        self, request: GenerationRequest
    ) -> AsyncIterator[StreamEvent]:
        model = self.model_for(request.provider)
        logger.debug(f"/v1/chat/completions stream model={model}")

        parts: list[str] = []
        try:
            stream = await self._client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": request.prompt}],
                max_tokens=request.max_tokens,
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    parts.append(content)
                    yield TokenEvent(text=content)
        except openai.APITimeoutError:
            raise ProviderTimeoutError(f"{model} timed out")
        except openai.APIStatusError as e:
            raise ProviderTransportError(
                f"OpenAI API error: {e.message}", status_code=e.status_code
            )
        except openai.APIConnectionError as e:
            raise ProviderTransportError(f"Could not reach OpenAI: {e}")

        yield DoneEvent(full_text="".join(parts))

    async def aclose(self) -> None:
        """Close the underlying client."""
        await self._client.close()

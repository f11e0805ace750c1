"""Streaming completion client for Anthropic Claude models."""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Literal, Optional, Protocol

from anthropic import AsyncAnthropic

from epicchat.constants import DEFAULT_MAX_TOKENS, SUPPORTED_MODELS
from epicchat.errors import MissingApiKeyError, StreamAborted

FragmentCallback = Callable[[str], None]


class CompletionStream(Protocol):
    """Handle on one in-flight streaming completion."""

    def on_fragment(self, callback: FragmentCallback) -> None: ...

    async def final(self) -> str: ...

    def request_abort(self) -> None: ...


class CompletionClient(Protocol):
    """Anything that can open a streaming completion."""

    def open_stream(
        self, system_prompt: str, messages: list[dict[str, Any]]
    ) -> CompletionStream: ...


@dataclass
class ModelDescriptor:
    """Descriptor for an LLM model."""

    provider: Literal["anthropic"]
    name: str
    max_output_tokens: int = DEFAULT_MAX_TOKENS
    temperature: Optional[float] = None


class AnthropicStream:
    """Streams one Messages API call and fans text fragments out to subscribers."""

    def __init__(self, client: AsyncAnthropic, request: dict[str, Any]):
        self._client = client
        self._request = request
        self._subscribers: list[FragmentCallback] = []
        self._task: Optional[asyncio.Task] = None
        self._abort_requested = False

    def on_fragment(self, callback: FragmentCallback) -> None:
        self._subscribers.append(callback)

    async def final(self) -> str:
        """Run the stream to completion.

        Returns:
            The aggregated assistant text

        Raises:
            StreamAborted: If request_abort() was called
        """
        if self._abort_requested:
            raise StreamAborted("Stream aborted before start")

        self._task = asyncio.ensure_future(self._consume())
        try:
            return await self._task
        except asyncio.CancelledError:
            if self._abort_requested:
                raise StreamAborted("Stream aborted") from None
            raise

    def request_abort(self) -> None:
        if self._abort_requested:
            return
        self._abort_requested = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def _consume(self) -> str:
        async with self._client.messages.stream(**self._request) as stream:
            async for text in stream.text_stream:
                for callback in list(self._subscribers):
                    callback(text)
                # Let other sessions run between fragments
                await asyncio.sleep(0)
            return await stream.get_final_text()


class LLM:
    """Anthropic Claude streaming interface."""

    def __init__(self, descriptor: ModelDescriptor, api_key: Optional[str]):
        """Initialize LLM client.

        Args:
            descriptor: Model descriptor
            api_key: Anthropic API key (may be None; streams then fail with
                MissingApiKeyError)
        """
        self.descriptor = descriptor
        self.api_key = api_key

        if descriptor.provider != "anthropic":
            raise ValueError(f"Only Anthropic models are supported. Got: {descriptor.provider}")

        self._client: Optional[AsyncAnthropic] = None

    @property
    def client(self) -> AsyncAnthropic:
        if not self.api_key:
            raise MissingApiKeyError()
        if self._client is None:
            self._client = AsyncAnthropic(api_key=self.api_key)
        return self._client

    def open_stream(
        self,
        system_prompt: str,
        messages: list[dict[str, Any]],
    ) -> AnthropicStream:
        """Prepare a streaming completion.

        Nothing is sent until ``final()`` is awaited on the returned handle.

        Args:
            system_prompt: System prompt text
            messages: List of message dicts with 'role' and 'content'

        Returns:
            Stream handle

        Raises:
            MissingApiKeyError: If no API key is configured
        """
        request: dict[str, Any] = {
            "model": self.descriptor.name,
            "max_tokens": self.descriptor.max_output_tokens,
            "system": system_prompt,
            "messages": [dict(m) for m in messages],
        }

        if self.descriptor.temperature is not None:
            request["temperature"] = self.descriptor.temperature

        return AnthropicStream(self.client, request)

    @classmethod
    def parse_model_string(
        cls, model_str: str, max_tokens: Optional[int] = None
    ) -> ModelDescriptor:
        """Parse model string into ModelDescriptor.

        Args:
            model_str: Model string (e.g., "anthropic:claude-sonnet-4-5")
            max_tokens: Optional max output tokens override

        Returns:
            ModelDescriptor

        Raises:
            ValueError: If model string is invalid
        """
        if model_str not in SUPPORTED_MODELS:
            raise ValueError(
                f"Unsupported model: {model_str}. "
                f"Supported: {', '.join(SUPPORTED_MODELS.keys())}"
            )

        model_config = SUPPORTED_MODELS[model_str]
        return ModelDescriptor(
            provider=model_config["provider"],
            name=model_config["name"],
            max_output_tokens=max_tokens or model_config["max_output_tokens"],
        )

    @classmethod
    def list_models(cls) -> list[str]:
        """List all supported model strings.

        Returns:
            List of model strings
        """
        return list(SUPPORTED_MODELS.keys())

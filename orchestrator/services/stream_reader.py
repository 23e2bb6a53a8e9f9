"""Streaming response reader for token-streamed provider calls."""

import asyncio
from collections.abc import AsyncGenerator, Callable, Generator
from typing import Any

from orchestrator.cancellation import CancellationToken
from orchestrator.clients.base import StreamingBackend
from orchestrator.exceptions import OperationCancelledError, ProviderError
from orchestrator.log import get_logger
from orchestrator.models import (
    DoneEvent,
    ErrorEvent,
    GenerationRequest,
    StreamEvent,
    TokenEvent,
)

logger = get_logger(__name__)


class StreamingResponseReader:
    """Consumes a provider's token feed as a normalized event sequence.

    Iterating the reader yields zero or more ``TokenEvent`` followed by
    exactly one ``DoneEvent`` or ``ErrorEvent``. Nothing is yielded after
    the terminal event or once the token is cancelled. When tokens were
    streamed, the ``DoneEvent`` text is their exact concatenation.

    Example:
        reader = StreamingResponseReader(backend, request, token)
        async for event in reader:
            ...
        print(reader.full_text)
    """

    def __init__(
        self,
        backend: StreamingBackend,
        request: GenerationRequest,
        token: CancellationToken | None = None,
    ) -> None:
        self.backend = backend
        self.request = request
        self.token = token or CancellationToken("stream")
        self._parts: list[str] = []
        self._full_text: str | None = None
        self._error: str | None = None
        self._consumed = False

    @property
    def partial_text(self) -> str:
        """Text assembled from the tokens received so far."""
        return "".join(self._parts)

    @property
    def full_text(self) -> str | None:
        """Final text, set once the stream completed successfully."""
        return self._full_text

    @property
    def error(self) -> str | None:
        """Error message, set if the stream ended with an error."""
        return self._error

    @property
    def finished(self) -> bool:
        return self._full_text is not None or self._error is not None

    def __aiter__(self) -> AsyncGenerator[StreamEvent, None]:
        if self._consumed:
            raise RuntimeError("A streaming response can only be read once")
        self._consumed = True
        return self._events()

    async def _events(self) -> AsyncGenerator[StreamEvent, None]:
        if self.token.cancelled:
            return

        feed = self.backend.stream_generation(self.request)
        terminal: DoneEvent | ErrorEvent | None = None
        try:
            while terminal is None:
                try:
                    event = await self.token.run(feed.__anext__())
                except StopAsyncIteration:
                    # Feed ended without a terminal event
                    terminal = self._done(None)
                    break
                except OperationCancelledError:
                    logger.debug(f"Stream from {self.request.provider} cancelled")
                    return
                except ProviderError as e:
                    logger.warning(f"Stream from {self.request.provider} failed: {e}")
                    terminal = self._fail(str(e))
                    break
                except Exception as e:
                    logger.error(
                        f"Unexpected error streaming from {self.request.provider}: {e}"
                    )
                    terminal = self._fail(f"Streaming failed: {e}")
                    break

                if self.token.cancelled:
                    return

                if isinstance(event, TokenEvent):
                    self._parts.append(event.text)
                    yield event
                    if self.token.cancelled:
                        return
                elif isinstance(event, DoneEvent):
                    terminal = self._done(event.full_text)
                else:
                    terminal = self._fail(event.message)
        finally:
            await self._close(feed)

        # The feed is closed before the terminal event is handed out
        if terminal is not None:
            yield terminal

    def _done(self, reported: str | None) -> DoneEvent:
        text = self.partial_text
        if not self._parts and reported is not None:
            text = reported
        elif reported is not None and reported != text:
            logger.warning(
                f"{self.request.provider} reported a final text that differs "
                f"from the streamed tokens; using the streamed text"
            )
        self._full_text = text
        return DoneEvent(full_text=text)

    def _fail(self, message: str) -> ErrorEvent:
        self._error = message or "Streaming failed"
        return ErrorEvent(message=self._error)

    async def _close(self, feed: Any) -> None:
        aclose = getattr(feed, "aclose", None)
        if aclose is None:
            return
        try:
            await aclose()
        except RuntimeError as e:
            # The feed is still suspended inside a cancelled read
            logger.debug(f"Could not close stream feed: {e}")

    def start(
        self,
        on_token: Callable[[str], None],
        on_done: Callable[[str], None],
        on_error: Callable[[str], None],
    ) -> "StreamHandle":
        """Consume the stream in a background task using callbacks.

        Exactly one of ``on_done``/``on_error`` is called unless the handle
        is cancelled first; after cancellation no callback fires.

        Returns:
            Handle used to cancel or await the consumer
        """
        task = asyncio.create_task(self._consume(on_token, on_done, on_error))
        return StreamHandle(task, self.token)

    async def _consume(
        self,
        on_token: Callable[[str], None],
        on_done: Callable[[str], None],
        on_error: Callable[[str], None],
    ) -> None:
        async for event in self:
            if self.token.cancelled:
                return
            if isinstance(event, TokenEvent):
                on_token(event.text)
            elif isinstance(event, DoneEvent):
                on_done(event.full_text)
            else:
                on_error(event.message)


class StreamHandle:
    """Cancellation handle returned by ``StreamingResponseReader.start``."""

    def __init__(self, task: asyncio.Task[None], token: CancellationToken) -> None:
        self._task = task
        self.token = token

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> None:
        """Stop the stream; no further callbacks fire."""
        self.token.cancel()

    def __await__(self) -> Generator[Any, None, None]:
        return self._task.__await__()

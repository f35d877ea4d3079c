"""Recovery from provider length rejections."""

from __future__ import annotations

import logging
from typing import AsyncGenerator, AsyncIterator, Awaitable, Callable

from ..ai_types import ChatCompletion
from .errors import (
    MessageLengthExceededError,
    MessagesLengthExceededError,
    ProviderErrorKind,
    RetryExhaustedError,
    classify_provider_error,
    parse_length_error_message,
)
from .model_types import ChatCompletionParams, MessageWindow, RetryState, call_maybe_async

LOGGER = logging.getLogger(__name__)

Assemble = Callable[[ChatCompletionParams], Awaitable[MessageWindow]]
Send = Callable[[ChatCompletionParams, MessageWindow], Awaitable[ChatCompletion]]
OpenStream = Callable[[ChatCompletionParams, MessageWindow], AsyncGenerator[ChatCompletion, None]]


class RetryController:
    """Runs a turn and re-runs it with a smaller window when the provider asks.

    Only a "messages array too long" rejection is recovered: the turn is
    re-assembled from the window that was rejected, limited to the maximum
    reported by the provider, without reloading history or schema. A single
    oversized message is reported and re-raised; anything else propagates
    unchanged.
    """

    def __init__(self, *, max_attempts: int = 3) -> None:
        self._max_attempts = max(0, max_attempts)

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def complete(self, params: ChatCompletionParams, assemble: Assemble, send: Send) -> ChatCompletion:
        state = RetryState()
        while True:
            window = await assemble(params)
            try:
                return await send(params, window)
            except Exception as exc:
                retry_params = await self._recover(exc, params, window, state)
                if retry_params is None:
                    raise
                params = retry_params

    async def stream(
        self,
        params: ChatCompletionParams,
        assemble: Assemble,
        open_stream: OpenStream,
    ) -> AsyncIterator[ChatCompletion]:
        """Stream a turn, retrying only while nothing has reached the caller."""
        state = RetryState()
        while True:
            window = await assemble(params)
            yielded = False
            chunks = open_stream(params, window)
            try:
                async for chunk in chunks:
                    yielded = True
                    yield chunk
                return
            except Exception as exc:
                if yielded:
                    raise
                retry_params = await self._recover(exc, params, window, state)
                if retry_params is None:
                    raise
                params = retry_params
            finally:
                await chunks.aclose()

    async def _recover(
        self,
        exc: Exception,
        params: ChatCompletionParams,
        window: MessageWindow,
        state: RetryState,
    ) -> ChatCompletionParams | None:
        """Return the params for the next attempt, or ``None`` to re-raise ``exc``."""
        info = classify_provider_error(exc)
        if info.kind is ProviderErrorKind.UNCLASSIFIED:
            return None

        length, max_length = parse_length_error_message(info.message)
        if info.kind is ProviderErrorKind.SINGLE_MESSAGE_TOO_LONG:
            error = MessageLengthExceededError(info.message, length=length, max_length=max_length, cause=exc)
            LOGGER.warning("Provider rejected an oversized message: %s", info.message)
            await call_maybe_async(params.on_message_length_exceeded_error, error)
            raise error from exc

        error = MessagesLengthExceededError(info.message, length=length, max_length=max_length, cause=exc)
        if max_length is None:
            LOGGER.warning("Could not read the maximum window length from: %s", info.message)
            raise error from exc
        if state.attempt >= self._max_attempts:
            LOGGER.warning("Window-length retries exhausted after %s attempt(s)", state.attempt)
            raise RetryExhaustedError(state.attempt, error) from exc

        state.record(max_length)
        LOGGER.info(
            "Message window of %s rejected (max %s); retry %s/%s",
            len(window),
            max_length,
            state.attempt,
            self._max_attempts,
        )
        await call_maybe_async(params.on_messages_length_exceeded_error, error)
        return params.evolve(
            max_messages_length=max_length,
            load_history=False,
            load_database_schema=False,
            messages=window.messages,
        )


__all__ = ["RetryController"]

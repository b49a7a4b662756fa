"""Helpers for the lazy fragment streams returned by streaming runs."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterable
from typing import Any, AsyncIterator

from workerchain.errors import ValidationError

logger = logging.getLogger(__name__)


def is_stream(value: Any) -> bool:
    """True if ``value`` can be consumed with ``async for``."""
    return isinstance(value, AsyncIterable)


async def close_stream(stream: Any) -> None:
    """Close ``stream`` if it supports ``aclose`` (async generators do)."""
    aclose = getattr(stream, "aclose", None)
    if aclose is not None:
        await aclose()


class FragmentStream:
    """
    Single-pass view over a backend's fragment stream.

    The underlying iterator is closed on exhaustion, on an error raised by
    the backend, and on ``aclose()``, including when ``aclose()`` is called
    before the first fragment was requested.  Also usable as
    ``async with``.
    """

    def __init__(self, stream: AsyncIterable[str]) -> None:
        self._iterator = aiter(stream)
        self._closed = False

    def __aiter__(self) -> "FragmentStream":
        return self

    async def __anext__(self) -> str:
        if self._closed:
            raise StopAsyncIteration
        try:
            return await anext(self._iterator)
        except BaseException:
            await self.aclose()
            raise

    async def aclose(self) -> None:
        if not self._closed:
            self._closed = True
            await close_stream(self._iterator)

    async def __aenter__(self) -> "FragmentStream":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


def relay(stream: AsyncIterable[str]) -> FragmentStream:
    """Wrap ``stream`` so its underlying iterator is always released."""
    return FragmentStream(stream)


async def single_fragment(text: str) -> AsyncIterator[str]:
    """A one-fragment stream, used when a backend answers a streaming request in full."""
    yield text


async def collect_stream(stream: AsyncIterable[str]) -> str:
    """Concatenate every fragment of ``stream`` into one string."""
    if stream is None:
        raise ValidationError("Stream cannot be None. Provide a valid stream.")
    parts: list[str] = []
    async for chunk in stream:
        parts.append(chunk)
    logger.debug("Collected %d fragment(s) from stream", len(parts))
    return "".join(parts)


stream_to_string = collect_stream

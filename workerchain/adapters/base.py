"""Model adapter interface types."""

from __future__ import annotations

from typing import Any, AsyncIterator, Protocol, runtime_checkable


@runtime_checkable
class ModelAdapter(Protocol):
    """Interface for text-generation backends used by a worker."""

    async def generate(
        self,
        prompt: str,
        context: str | None = None,
        *,
        max_tokens: int | None = None,
        stream: bool = False,
    ) -> str | AsyncIterator[str]:
        """Return the full reply, or an async iterator of fragments when streaming."""
        ...


def is_model_adapter(value: Any) -> bool:
    """True if ``value`` exposes a callable ``generate``."""
    return isinstance(value, ModelAdapter) and callable(getattr(value, "generate", None))

"""
workerchain/worker.py
---------------------
Fluent configuration for a single stage of a chain.

    planner = (
        worker()
        .model(chat_model(client))
        .context("Create a brief plan.")
    )

A Worker only holds configuration.  The executor snapshots it into a
``WorkerInfo`` at the start of every invocation.
"""

from __future__ import annotations

import inspect
from typing import Callable

from workerchain.adapters.base import ModelAdapter, is_model_adapter
from workerchain.errors import ConfigurationError, ValidationError
from workerchain.records import WorkerInfo


def _describe(value: object) -> str:
    if isinstance(value, str):
        return "empty string" if not value.strip() else "str"
    return type(value).__name__


class Worker:
    """One stage of a chain: a model adapter plus its instructions."""

    def __init__(self) -> None:
        self._model_adapter: ModelAdapter | None = None
        self._context: str | None = None

    def model(self, factory: Callable[[], ModelAdapter]) -> "Worker":
        """Bind the adapter produced by ``factory``.

        The factory is called immediately so that a misconfigured backend
        fails here rather than halfway through a chain.
        """
        adapter = factory()
        if not is_model_adapter(adapter):
            raise ConfigurationError(
                "Model factory result must be a valid ModelAdapter instance. "
                f"Received {_describe(adapter)}."
            )
        if not inspect.iscoroutinefunction(adapter.generate):
            raise ConfigurationError(
                f"Model adapter {type(adapter).__name__}.generate must be an async method."
            )
        self._model_adapter = adapter
        return self

    def context(self, text: str) -> "Worker":
        """Set the instructions for this worker."""
        if not isinstance(text, str) or not text.strip():
            raise ValidationError(
                f"Worker context must be a non-empty string. Received {_describe(text)}."
            )
        self._context = text
        return self

    def get_model_adapter(self) -> ModelAdapter:
        if self._model_adapter is None:
            raise ConfigurationError(
                "Worker model must be a valid ModelAdapter instance. "
                "Call .model() before running the worker."
            )
        return self._model_adapter

    def get_base_context(self) -> str | None:
        return self._context

    def snapshot(self, index: int) -> WorkerInfo:
        """Freeze the current configuration for one chain invocation."""
        try:
            adapter = self.get_model_adapter()
        except ConfigurationError as exc:
            raise ConfigurationError(f"Worker at index {index}: {exc}") from None
        return WorkerInfo(index=index, context=self._context or "", model_adapter=adapter)

    def __repr__(self) -> str:
        adapter = type(self._model_adapter).__name__ if self._model_adapter else None
        return f"Worker(model={adapter}, context={self._context!r})"


def worker() -> Worker:
    """Create a new, unconfigured Worker."""
    return Worker()

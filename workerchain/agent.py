"""
workerchain/agent.py
--------------------
The chain executor.

    chain = agent(extractor, solver)
    answer = await chain("2 and 2 added together")
    stream = await chain("2 and 2 added together", stream=True)
    async for fragment in stream:
        ...

Workers run strictly in order.  The output of each one becomes the input
of the next; only the final worker may stream.  The first failure aborts
the chain and propagates to the caller unchanged.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator

from workerchain.context import preview_output
from workerchain.errors import ConfigurationError, ValidationError
from workerchain.execution import process_final_worker, process_worker, stream_final_worker
from workerchain.records import PreviousOutput, WorkerContext, WorkerInfo
from workerchain.worker import Worker

logger = logging.getLogger(__name__)

_LOG_CONTEXT_PREVIEW = 60


class Agent:
    """An ordered, immutable roster of workers plus the logic to run it."""

    def __init__(self, *workers: Worker, name: str | None = None) -> None:
        if not workers:
            raise ConfigurationError(
                "Agent must have at least one worker. Provide one or more Worker instances."
            )
        for i, w in enumerate(workers):
            if not isinstance(w, Worker):
                raise ConfigurationError(
                    f"Agent worker at index {i} must be a valid Worker instance. "
                    f"Received {type(w).__name__}."
                )
        self._workers: tuple[Worker, ...] = tuple(workers)
        # Frozen here; later changes to a Worker do not reach this chain.
        self._infos: tuple[WorkerInfo, ...] = tuple(
            w.snapshot(i) for i, w in enumerate(self._workers)
        )
        self._contexts: tuple[WorkerContext, ...] = tuple(
            WorkerContext(index=info.index, context=info.context) for info in self._infos
        )
        self.name = name or "agent"

    def __len__(self) -> int:
        return len(self._workers)

    @property
    def workers(self) -> tuple[Worker, ...]:
        return self._workers

    # ── per-invocation state ──────────────────────────────────────────────

    @staticmethod
    def _validate_input(value: Any) -> None:
        if not isinstance(value, str) or not value.strip():
            received = "empty string" if isinstance(value, str) else type(value).__name__
            raise ValidationError(f"Agent input must be a non-empty string. Received {received}.")

    def _log_stage(self, info: WorkerInfo, total: int) -> None:
        logger.info(
            "[Agent %s] worker %d/%d -> \"%s\"",
            self.name, info.index + 1, total,
            preview_output(info.context, _LOG_CONTEXT_PREVIEW),
        )

    async def _run_leading(
        self, user_input: str, max_tokens: int | None
    ) -> tuple[WorkerInfo, tuple[WorkerContext, ...], list[PreviousOutput], Any]:
        """Run every worker but the last; return what the final worker needs."""
        self._validate_input(user_input)
        infos, contexts = self._infos, self._contexts
        total = len(infos)

        current: Any = user_input
        history: list[PreviousOutput] = []
        for info in infos[:-1]:
            self._log_stage(info, total)
            try:
                current, record = await process_worker(
                    info, contexts, history, current, max_tokens
                )
            except Exception:
                logger.error(
                    "[Agent %s] worker %d/%d failed; aborting chain",
                    self.name, info.index + 1, total,
                )
                raise
            history.append(record)
            logger.debug(
                "[Agent %s] worker %d/%d done (%d chars)",
                self.name, info.index + 1, total, len(record.output),
            )

        final = infos[-1]
        self._log_stage(final, total)
        return final, contexts, history, current

    # ── public entry points ───────────────────────────────────────────────

    async def run(self, user_input: str, max_tokens: int | None = None) -> str:
        """Run the whole chain and return the final worker's text."""
        final, contexts, history, current = await self._run_leading(user_input, max_tokens)
        try:
            return await process_final_worker(final, contexts, history, current, max_tokens)
        except Exception:
            logger.error(
                "[Agent %s] final worker %d failed", self.name, final.index + 1,
            )
            raise

    async def run_stream(
        self, user_input: str, max_tokens: int | None = None
    ) -> AsyncIterator[str]:
        """
        Run every worker but the last to completion, then return the final
        worker's reply as a single-pass async iterator of fragments.
        """
        final, contexts, history, current = await self._run_leading(user_input, max_tokens)
        try:
            return await stream_final_worker(final, contexts, history, current, max_tokens)
        except Exception:
            logger.error(
                "[Agent %s] final worker %d failed", self.name, final.index + 1,
            )
            raise

    async def __call__(
        self,
        user_input: str,
        *,
        max_tokens: int | None = None,
        stream: bool = False,
    ) -> str | AsyncIterator[str]:
        if stream:
            return await self.run_stream(user_input, max_tokens=max_tokens)
        return await self.run(user_input, max_tokens=max_tokens)

    def __repr__(self) -> str:
        return f"Agent(name={self.name!r}, workers={len(self._workers)})"


def agent(*workers: Worker, name: str | None = None) -> Agent:
    """Chain ``workers`` together; each one processes the previous one's output."""
    return Agent(*workers, name=name)

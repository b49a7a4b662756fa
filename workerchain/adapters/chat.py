"""
workerchain/adapters/chat.py
----------------------------
ModelAdapter backed by an Agent Framework chat client.

Any client produced by ``workerchain.providers.build_client`` works here:
AzureAIClient (Foundry), AzureOpenAIChatClient or OpenAIChatClient.  Each
``generate`` call creates a short-lived chat agent whose instructions are
the enriched context built by the chain.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Callable

from workerchain.errors import StageExecutionError, ValidationError

logger = logging.getLogger(__name__)


class ChatClientAdapter:
    """Adapts an Agent Framework chat client to the ModelAdapter interface."""

    def __init__(self, client: Any, name: str = "WorkerChainAgent") -> None:
        self._client = client
        self.name = name

    def _create_agent(self, context: str | None) -> Any:
        return self._client.create_agent(name=self.name, instructions=context or None)

    @staticmethod
    def _run_options(max_tokens: int | None) -> dict[str, Any]:
        return {"max_tokens": max_tokens} if max_tokens is not None else {}

    async def generate(
        self,
        prompt: str,
        context: str | None = None,
        *,
        max_tokens: int | None = None,
        stream: bool = False,
    ) -> str | AsyncIterator[str]:
        if not isinstance(prompt, str) or not prompt.strip():
            raise ValidationError("Prompt must be a non-empty string.")

        agent = self._create_agent(context)
        options = self._run_options(max_tokens)

        if stream:
            return self._stream(agent, prompt, options)

        logger.debug("[%s] run (%d chars)", self.name, len(prompt))
        try:
            response = await agent.run(prompt, **options)
        except Exception as exc:  # noqa: BLE001
            raise StageExecutionError(f"{self.name} model call failed: {exc}") from exc

        text = response.text
        if not text:
            raise StageExecutionError(
                f"{self.name} returned a response with no output text."
            )
        return text

    async def _stream(
        self, agent: Any, prompt: str, options: dict[str, Any]
    ) -> AsyncIterator[str]:
        logger.debug("[%s] run_stream (%d chars)", self.name, len(prompt))
        updates = agent.run_stream(prompt, **options)
        try:
            async for update in updates:
                if update.text:
                    yield update.text
        except Exception as exc:  # noqa: BLE001
            raise StageExecutionError(f"{self.name} stream failed: {exc}") from exc
        finally:
            aclose = getattr(updates, "aclose", None)
            if aclose is not None:
                await aclose()


def chat_model(client: Any, name: str = "WorkerChainAgent") -> Callable[[], ChatClientAdapter]:
    """Factory for ``Worker.model``: ``worker().model(chat_model(client))``."""
    return lambda: ChatClientAdapter(client, name=name)

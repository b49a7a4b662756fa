"""
workerchain/adapters/foundry.py
-------------------------------
ModelAdapter that runs an *existing* Azure AI Foundry agent via the
azure-ai-agents SDK.

The deployed agent keeps its own instructions; the chain's enriched
context is sent as ``additional_instructions`` on each run.  Foundry runs
are not streamed, so a streaming request receives the full reply and the
chain delivers it as a single fragment.

SDK note
--------
The agents runtime lives in its own package, azure-ai-agents.  The client
is azure.ai.agents.aio.AgentsClient and the endpoint is the Foundry project
endpoint.
"""

from __future__ import annotations

import logging
import os
from typing import AsyncIterator, Callable

from azure.ai.agents.aio import AgentsClient
from azure.ai.agents.models import MessageRole
from azure.core.credentials import AzureKeyCredential
from azure.core.exceptions import AzureError
from azure.core.pipeline.policies import AzureKeyCredentialPolicy
from azure.identity.aio import DefaultAzureCredential

from workerchain.errors import ConfigurationError, StageExecutionError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Singleton client
# ---------------------------------------------------------------------------

_client: AgentsClient | None = None
_credential: DefaultAzureCredential | None = None


async def _get_client() -> AgentsClient:
    """Return (or lazily create) the shared AgentsClient.

    Uses AzureKeyCredential when FOUNDRY_USE_KEY_AUTH=true (and FOUNDRY_API_KEY
    is set), otherwise DefaultAzureCredential.
    """
    global _client, _credential
    if _client is None:
        try:
            endpoint = os.environ["FOUNDRY_PROJECT_ENDPOINT"]
        except KeyError:
            raise ConfigurationError(
                "FOUNDRY_PROJECT_ENDPOINT must be set to run Foundry agents."
            ) from None
        use_key_auth = os.environ.get("FOUNDRY_USE_KEY_AUTH", "false").lower() == "true"
        if use_key_auth:
            key_cred = AzureKeyCredential(os.environ["FOUNDRY_API_KEY"])
            # AzureKeyCredential has no get_token; the policy sends the api-key
            # header instead of a bearer token.
            _client = AgentsClient(
                endpoint=endpoint,
                credential=key_cred,
                authentication_policy=AzureKeyCredentialPolicy(key_cred, "api-key"),
            )
            logger.debug("AgentsClient initialised with key auth for %s", endpoint)
        else:
            _credential = DefaultAzureCredential()
            _client = AgentsClient(endpoint=endpoint, credential=_credential)
            logger.debug("AgentsClient initialised with DefaultAzureCredential for %s", endpoint)
    return _client


async def close_client() -> None:
    """Close the shared client and credential.  Call this on shutdown."""
    global _client, _credential
    if _client:
        await _client.close()
        _client = None
    if _credential:
        await _credential.close()
        _credential = None


# ---------------------------------------------------------------------------
# Agent-ID resolution (cached in-process)
# ---------------------------------------------------------------------------

_agent_id_cache: dict[str, str] = {}


async def _resolve_agent_id(client: AgentsClient, agent_name: str) -> str:
    """Find the ID of a deployed agent by its display name."""
    if agent_name in _agent_id_cache:
        return _agent_id_cache[agent_name]

    async for agent in client.list_agents():
        if agent.name == agent_name:
            _agent_id_cache[agent_name] = agent.id
            logger.debug("Resolved agent '%s' -> id=%s", agent_name, agent.id)
            return agent.id

    raise ConfigurationError(
        f"Agent '{agent_name}' was not found in your Foundry project. "
        "Check the agent name in the pipeline config and make sure it is deployed."
    )


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


class FoundryAgentAdapter:
    """Runs one named Foundry agent per ``generate`` call."""

    def __init__(self, agent_name: str) -> None:
        self.agent_name = agent_name

    async def generate(
        self,
        prompt: str,
        context: str | None = None,
        *,
        max_tokens: int | None = None,
        stream: bool = False,
    ) -> str | AsyncIterator[str]:
        try:
            return await self._run(prompt, context, max_tokens)
        except AzureError as exc:
            raise StageExecutionError(
                f"Calling Foundry agent '{self.agent_name}' failed: {exc}"
            ) from exc

    async def _run(self, prompt: str, context: str | None, max_tokens: int | None) -> str:
        client = await _get_client()
        agent_id = await _resolve_agent_id(client, self.agent_name)

        thread = await client.threads.create()
        await client.messages.create(
            thread_id=thread.id, role=MessageRole.USER, content=prompt
        )
        run_options: dict[str, object] = {}
        if context:
            run_options["additional_instructions"] = context
        if max_tokens is not None:
            run_options["max_completion_tokens"] = max_tokens

        logger.info("[Foundry] %s <- %d chars", self.agent_name, len(prompt))
        run = await client.runs.create_and_process(
            thread_id=thread.id, agent_id=agent_id, **run_options
        )

        if run.status == "failed":
            err = getattr(run, "last_error", None)
            err_msg = err.message if err else "unknown error"
            logger.error("Agent '%s' run failed: %s", self.agent_name, err_msg)
            raise StageExecutionError(f"{self.agent_name} agent run failed: {err_msg}")

        text_msg = await client.messages.get_last_message_text_by_role(
            thread_id=thread.id, role=MessageRole.AGENT
        )
        if not text_msg:
            raise StageExecutionError(f"{self.agent_name} returned no text response")

        logger.info("[Foundry] %s -> %d chars", self.agent_name, len(text_msg.text.value))
        return text_msg.text.value


def foundry_agent(agent_name: str) -> Callable[[], FoundryAgentAdapter]:
    """Factory for ``Worker.model``: ``worker().model(foundry_agent("Niceify"))``."""
    return lambda: FoundryAgentAdapter(agent_name)

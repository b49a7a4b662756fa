"""
workerchain/providers.py
------------------------
Builds the Agent Framework chat client selected by MODEL_PROVIDER.

  MODEL_PROVIDER=foundry        Azure AI Foundry project (default)
  MODEL_PROVIDER=azure_openai   Azure OpenAI deployment
  MODEL_PROVIDER=openai         OpenAI API

Key auth is used when FOUNDRY_USE_KEY_AUTH=true, otherwise
DefaultAzureCredential.  SDK imports are deferred to the branch that needs
them so the core chain imports without any provider installed.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from workerchain.errors import ConfigurationError

logger = logging.getLogger(__name__)

PROVIDERS = ("foundry", "azure_openai", "openai")


def current_provider() -> str:
    return os.environ.get("MODEL_PROVIDER", "foundry").lower()


def _require(var: str) -> str:
    try:
        return os.environ[var]
    except KeyError:
        raise ConfigurationError(
            f"Environment variable {var} is required for MODEL_PROVIDER={current_provider()}."
        ) from None


@asynccontextmanager
async def build_client(provider: str | None = None) -> AsyncIterator[Any]:
    """Yield a chat client for ``provider`` and release its credential on exit."""
    provider = (provider or current_provider()).lower()
    use_key_auth = os.environ.get("FOUNDRY_USE_KEY_AUTH", "false").lower() == "true"
    logger.debug("Building chat client for provider '%s' (key auth: %s)", provider, use_key_auth)

    if provider == "foundry":
        from agent_framework.azure import AzureAIClient

        endpoint = _require("FOUNDRY_PROJECT_ENDPOINT")
        model = os.environ.get("FOUNDRY_MODEL_DEPLOYMENT_NAME", "gpt-4.1-mini")
        if use_key_auth:
            from azure.ai.projects.aio import AIProjectClient
            from azure.core.credentials import AzureKeyCredential
            from azure.core.pipeline.policies import AzureKeyCredentialPolicy

            key_cred = AzureKeyCredential(_require("FOUNDRY_API_KEY"))
            yield AzureAIClient(
                project_client=AIProjectClient(
                    endpoint=endpoint,
                    credential=key_cred,
                    authentication_policy=AzureKeyCredentialPolicy(key_cred, "api-key"),
                ),
                model_deployment_name=model,
            )
        else:
            from azure.identity.aio import DefaultAzureCredential

            async with DefaultAzureCredential() as credential:
                yield AzureAIClient(
                    project_endpoint=endpoint,
                    model_deployment_name=model,
                    credential=credential,
                )

    elif provider == "azure_openai":
        from agent_framework.azure import AzureOpenAIChatClient

        endpoint = _require("AZURE_OPENAI_ENDPOINT")
        deployment = _require("AZURE_OPENAI_DEPLOYMENT_NAME")
        if use_key_auth:
            yield AzureOpenAIChatClient(
                endpoint=endpoint,
                deployment_name=deployment,
                api_key=_require("AZURE_OPENAI_API_KEY"),
            )
        else:
            from azure.identity import DefaultAzureCredential

            credential = DefaultAzureCredential()
            try:
                yield AzureOpenAIChatClient(
                    endpoint=endpoint,
                    deployment_name=deployment,
                    credential=credential,
                )
            finally:
                credential.close()

    elif provider == "openai":
        api_key = _require("OPENAI_API_KEY")
        from agent_framework.openai import OpenAIChatClient

        yield OpenAIChatClient(
            model_id=os.environ.get("OPENAI_MODEL", "gpt-4.1-mini"),
            api_key=api_key,
        )
    else:
        raise ConfigurationError(
            f"Unknown MODEL_PROVIDER '{provider}'. Choose one of: {', '.join(PROVIDERS)}"
        )

"""Model adapters: the ModelAdapter interface and the bundled backends.

``FoundryAgentAdapter`` lives in ``workerchain.adapters.foundry`` and is
imported from there so the azure-ai-agents SDK is only loaded when used.
"""

from workerchain.adapters.base import ModelAdapter, is_model_adapter
from workerchain.adapters.chat import ChatClientAdapter, chat_model

__all__ = ["ModelAdapter", "is_model_adapter", "ChatClientAdapter", "chat_model"]

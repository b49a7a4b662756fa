"""
workerchain/errors.py
---------------------
Exception hierarchy for the worker chain.

Everything raised by the chain itself derives from ``WorkerChainError`` so
callers can catch the whole family at once.  Errors raised by a model
adapter are propagated untouched; the bundled adapters raise
``StageExecutionError`` for backend failures.
"""

from __future__ import annotations


class WorkerChainError(Exception):
    """Base class for all worker-chain failures."""


class ConfigurationError(WorkerChainError, ValueError):
    """A chain or worker is configured in a way that can never execute."""


class ValidationError(WorkerChainError, ValueError):
    """A value handed to the chain at runtime is unusable."""


class AdapterContractError(WorkerChainError, TypeError):
    """A model adapter returned a result shape that does not match the request."""


class StageExecutionError(WorkerChainError):
    """The model backend behind an adapter failed (network, auth, bad payload)."""

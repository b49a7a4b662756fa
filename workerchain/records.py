"""
workerchain/records.py
----------------------
Shared data model for one chain execution.

These records are snapshots: they are built once per invocation and never
mutated, so the executor does not need to re-query a Worker mid-run.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from workerchain.adapters.base import ModelAdapter


@dataclass(frozen=True)
class WorkerInfo:
    """A worker resolved for execution."""

    index: int
    """0-based position in the chain."""

    context: str
    """The worker's base instructions, or an empty string if none were set."""

    model_adapter: "ModelAdapter"


@dataclass(frozen=True)
class WorkerContext:
    """The part of a WorkerInfo needed to render diagrams and history."""

    index: int
    context: str


@dataclass(frozen=True)
class PreviousOutput:
    """Output of a non-final worker that has already completed."""

    index: int
    context: str
    output: str
    """The raw string the model returned, before structured parsing."""

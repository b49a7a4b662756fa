"""
workerchain/context.py
----------------------
Builds the enriched context handed to each worker's model.

Every stage sees the same four sections, in order:

  1. the process-flow diagram of the whole chain
  2. the execution history (what earlier workers produced)
  3. the upcoming workers (what happens after this one)
  4. the worker's own instructions, verbatim

This gives each model situational awareness without the ModelAdapter
interface having to know anything about pipelines.
"""

from __future__ import annotations

from typing import Sequence

from workerchain.diagram import NO_CONTEXT_LABEL, generate_agent_diagram
from workerchain.records import PreviousOutput, WorkerContext

MAX_OUTPUT_PREVIEW_LENGTH = 150


def preview_output(output: str, limit: int = MAX_OUTPUT_PREVIEW_LENGTH) -> str:
    """Cut ``output`` to ``limit`` characters, marking the cut with '...'."""
    if len(output) > limit:
        return output[:limit] + "..."
    return output


def _history_section(
    worker_index: int,
    worker_contexts: Sequence[WorkerContext],
    previous_outputs: Sequence[PreviousOutput],
) -> list[str]:
    parts = ["Execution History"]
    if not previous_outputs:
        parts += [
            "You are the first worker in the chain.",
            "No previous workers have executed.",
        ]
        return parts

    parts += [f"You are Worker {worker_index + 1} of {len(worker_contexts)}.", ""]
    for prev in previous_outputs:
        parts += [
            f'Worker {prev.index + 1}: "{prev.context or NO_CONTEXT_LABEL}"',
            f"  → {preview_output(prev.output)}",
            "",
        ]
    return parts


def _upcoming_section(
    worker_index: int, worker_contexts: Sequence[WorkerContext]
) -> list[str]:
    parts = ["Upcoming Workers"]
    last = len(worker_contexts) - 1
    if worker_index >= last:
        parts += [
            "You are the final worker in the chain.",
            "No workers will execute after you.",
        ]
        return parts

    parts += [f"After you complete, {last - worker_index} worker(s) will execute:", ""]
    for nxt in worker_contexts[worker_index + 1:]:
        is_final = nxt.index == last
        branch = "└─" if is_final else "├─"
        suffix = " (FINAL)" if is_final else ""
        parts.append(
            f'  {branch} Worker {nxt.index + 1}{suffix}: "{nxt.context or NO_CONTEXT_LABEL}"'
        )
    return parts


def build_enhanced_context(
    worker_index: int,
    worker_contexts: Sequence[WorkerContext],
    previous_outputs: Sequence[PreviousOutput],
    base_context: str,
) -> str:
    """
    Assemble the enriched context for the worker at ``worker_index``.

    Parameters
    ----------
    worker_index:
        0-based position of the worker being prepared.
    worker_contexts:
        The full roster, in chain order.
    previous_outputs:
        History of completed workers, in completion order.
    base_context:
        The worker's own instructions.
    """
    parts: list[str] = [generate_agent_diagram(worker_contexts), ""]
    parts += _history_section(worker_index, worker_contexts, previous_outputs)
    parts.append("")
    parts += _upcoming_section(worker_index, worker_contexts)
    parts.append("")
    parts += ["Your Task", base_context]
    return "\n".join(parts)

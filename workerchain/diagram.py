"""Box diagram of the worker sequence, embedded in every enriched context."""

from __future__ import annotations

from typing import Sequence

from workerchain.records import WorkerContext

DIAGRAM_TITLE = "Agent Process Flow"
BOX_WIDTH = 50
MAX_CONTEXT_LENGTH = 48
TRUNCATED_LENGTH = 45
NO_CONTEXT_LABEL = "No context set"
CONNECTOR = " " * 9 + "⬇"


def _preview(context: str) -> str:
    text = context or NO_CONTEXT_LABEL
    if len(text) > MAX_CONTEXT_LENGTH:
        return text[:TRUNCATED_LENGTH] + "..."
    return text


def generate_agent_diagram(worker_contexts: Sequence[WorkerContext]) -> str:
    """Render the chain as a column of fixed-width boxes joined by arrows."""
    lines = [DIAGRAM_TITLE, ""]
    last = len(worker_contexts) - 1

    for position, ctx in enumerate(worker_contexts):
        label = f"Worker {ctx.index + 1}"
        lines.append(f"┌─ {label} {'─' * max(0, BOX_WIDTH - len(label) - 3)}┐")
        lines.append(f"│ {_preview(ctx.context).ljust(BOX_WIDTH - 2)} │")
        lines.append(f"└{'─' * BOX_WIDTH}┘")
        if position != last:
            lines.append(CONNECTOR)

    return "\n".join(lines)

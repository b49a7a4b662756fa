"""
tests/test_context.py
---------------------
Unit tests for the enriched context handed to every worker.
"""

import pytest

from workerchain.context import (
    MAX_OUTPUT_PREVIEW_LENGTH,
    build_enhanced_context,
    preview_output,
)
from workerchain.diagram import generate_agent_diagram
from workerchain.records import PreviousOutput, WorkerContext


def _roster(n):
    return [WorkerContext(index=i, context=f"Step {i + 1} instructions") for i in range(n)]


def _upcoming_entries(text):
    section = text.split("Upcoming Workers", 1)[1].split("Your Task", 1)[0]
    return [l for l in section.splitlines() if l.strip().startswith(("├─", "└─"))]


# ---------------------------------------------------------------------------
# Section order and content
# ---------------------------------------------------------------------------


def test_sections_in_fixed_order():
    roster = _roster(3)
    text = build_enhanced_context(1, roster, [], "Do step 2.")

    diagram = generate_agent_diagram(roster)
    assert text.startswith(diagram)
    positions = [
        text.index("Execution History"),
        text.index("Upcoming Workers"),
        text.index("Your Task"),
    ]
    assert positions == sorted(positions)
    assert text.endswith("Your Task\nDo step 2.")


def test_first_worker_has_no_history():
    text = build_enhanced_context(0, _roster(2), [], "Plan.")
    assert "You are the first worker in the chain." in text
    assert "No previous workers have executed." in text


def test_history_lists_previous_workers_in_order():
    roster = _roster(3)
    history = [
        PreviousOutput(index=0, context="Step 1 instructions", output="first output"),
        PreviousOutput(index=1, context="Step 2 instructions", output="second output"),
    ]
    text = build_enhanced_context(2, roster, history, "Finish.")

    assert "You are Worker 3 of 3." in text
    first = text.index('Worker 1: "Step 1 instructions"')
    second = text.index('Worker 2: "Step 2 instructions"')
    assert first < text.index("  → first output") < second < text.index("  → second output")


def test_history_truncates_long_output():
    long_output = "z" * (MAX_OUTPUT_PREVIEW_LENGTH + 50)
    history = [PreviousOutput(index=0, context="c", output=long_output)]
    text = build_enhanced_context(1, _roster(2), history, "Finish.")

    assert "  → " + "z" * MAX_OUTPUT_PREVIEW_LENGTH + "...\n" in text
    assert "z" * (MAX_OUTPUT_PREVIEW_LENGTH + 1) not in text


def test_final_worker_has_no_upcoming():
    text = build_enhanced_context(2, _roster(3), [], "Finish.")
    assert "You are the final worker in the chain." in text
    assert "No workers will execute after you." in text
    assert _upcoming_entries(text) == []


@pytest.mark.parametrize("n", [1, 2, 3, 5])
def test_upcoming_count_matches_position(n):
    roster = _roster(n)
    for i in range(n):
        entries = _upcoming_entries(build_enhanced_context(i, roster, [], "x"))
        assert len(entries) == n - 1 - i
        numbers = [int(e.split("Worker ")[1].split()[0].rstrip(":")) for e in entries]
        assert numbers == list(range(i + 2, n + 1))


def test_upcoming_marks_final_worker():
    text = build_enhanced_context(0, _roster(3), [], "Plan.")
    entries = _upcoming_entries(text)

    assert "After you complete, 2 worker(s) will execute:" in text
    assert entries[0].strip() == '├─ Worker 2: "Step 2 instructions"'
    assert entries[1].strip() == '└─ Worker 3 (FINAL): "Step 3 instructions"'


def test_upcoming_without_context_uses_placeholder():
    roster = [WorkerContext(index=0, context="Plan."), WorkerContext(index=1, context="")]
    text = build_enhanced_context(0, roster, [], "Plan.")
    assert 'Worker 2 (FINAL): "No context set"' in text


def test_history_without_context_uses_placeholder():
    roster = [WorkerContext(index=0, context=""), WorkerContext(index=1, context="Solve.")]
    history = [PreviousOutput(index=0, context="", output="draft")]
    text = build_enhanced_context(1, roster, history, "Solve.")
    assert 'Worker 1: "No context set"' in text
    assert 'Worker 1: ""' not in text


def test_is_deterministic():
    roster = _roster(2)
    history = [PreviousOutput(index=0, context="c", output="o")]
    assert build_enhanced_context(1, roster, history, "t") == build_enhanced_context(
        1, roster, history, "t"
    )


# ---------------------------------------------------------------------------
# preview_output
# ---------------------------------------------------------------------------


def test_preview_output_at_budget_is_verbatim():
    text = "q" * MAX_OUTPUT_PREVIEW_LENGTH
    assert preview_output(text) == text


def test_preview_output_over_budget():
    text = "q" * (MAX_OUTPUT_PREVIEW_LENGTH + 1)
    assert preview_output(text) == "q" * MAX_OUTPUT_PREVIEW_LENGTH + "..."


def test_preview_output_custom_limit():
    assert preview_output("abcdef", 3) == "abc..."

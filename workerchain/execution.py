"""
workerchain/execution.py
------------------------
Runs one worker against one input.

Non-final workers always run to completion and their reply is parsed as
JSON where possible, so structured payloads can travel between stages.
The final worker may instead hand back a lazy fragment stream.
"""

from __future__ import annotations

import inspect
import json
import logging
from typing import Any, AsyncIterator, Sequence

from workerchain.context import build_enhanced_context
from workerchain.errors import AdapterContractError, ValidationError
from workerchain.stream import close_stream, is_stream, relay, single_fragment
from workerchain.records import PreviousOutput, WorkerContext, WorkerInfo

logger = logging.getLogger(__name__)

Structured = dict[str, Any] | list[Any]


def input_to_prompt(value: Any) -> str:
    """Strings pass through verbatim; anything else is pretty-printed as JSON."""
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, ensure_ascii=False)


def parse_structured(text: str) -> Structured | None:
    """
    Return the JSON object or array encoded in ``text``, else ``None``.

    Bare scalars (``4``, ``true``, ``null``, ``"quoted"``) are not treated as
    structured output: a worker answering ``4`` keeps the text ``"4"``.
    """
    try:
        value = json.loads(text)
    except json.JSONDecodeError:
        return None
    if isinstance(value, (dict, list)):
        return value
    return None


def coerce_output(text: str) -> Any:
    """Stage output handed to the next worker: parsed structure or raw text."""
    parsed = parse_structured(text)
    return text if parsed is None else parsed


async def _generate(
    info: WorkerInfo,
    worker_contexts: Sequence[WorkerContext],
    previous_outputs: Sequence[PreviousOutput],
    current_input: Any,
    max_tokens: int | None,
    stream: bool,
) -> Any:
    if current_input is None:
        raise ValidationError(
            f"Input for worker at index {info.index} cannot be None. Provide a valid input."
        )

    enhanced_context = build_enhanced_context(
        info.index, worker_contexts, previous_outputs, info.context
    )
    prompt = input_to_prompt(current_input)
    logger.debug(
        "Worker %d prompt (%d chars), context (%d chars), stream=%s",
        info.index + 1, len(prompt), len(enhanced_context), stream,
    )
    pending = info.model_adapter.generate(
        prompt, enhanced_context, max_tokens=max_tokens, stream=stream
    )
    if not inspect.isawaitable(pending):
        raise AdapterContractError(
            f"Worker at index {info.index}: generate must be a coroutine. "
            f"Received {type(pending).__name__}."
        )
    return await pending


async def _reject_non_string(info: WorkerInfo, result: Any) -> None:
    if is_stream(result):
        await close_stream(result)
        raise AdapterContractError(
            f"Worker at index {info.index} returned a stream although streaming "
            "was not requested."
        )
    raise AdapterContractError(
        f"Worker at index {info.index} must return a string when not streaming. "
        f"Received {type(result).__name__}."
    )


async def process_worker(
    info: WorkerInfo,
    worker_contexts: Sequence[WorkerContext],
    previous_outputs: Sequence[PreviousOutput],
    current_input: Any,
    max_tokens: int | None = None,
) -> tuple[Any, PreviousOutput]:
    """Run a non-final worker and return ``(output, history_record)``."""
    result = await _generate(
        info, worker_contexts, previous_outputs, current_input, max_tokens, stream=False
    )
    if not isinstance(result, str):
        await _reject_non_string(info, result)

    record = PreviousOutput(index=info.index, context=info.context, output=result)
    return coerce_output(result), record


async def process_final_worker(
    info: WorkerInfo,
    worker_contexts: Sequence[WorkerContext],
    previous_outputs: Sequence[PreviousOutput],
    current_input: Any,
    max_tokens: int | None = None,
) -> str:
    """Run the final worker to completion and return its user-facing text."""
    result = await _generate(
        info, worker_contexts, previous_outputs, current_input, max_tokens, stream=False
    )
    if not isinstance(result, str):
        await _reject_non_string(info, result)

    parsed = parse_structured(result)
    if parsed is None:
        return result
    return json.dumps(parsed, ensure_ascii=False)


async def stream_final_worker(
    info: WorkerInfo,
    worker_contexts: Sequence[WorkerContext],
    previous_outputs: Sequence[PreviousOutput],
    current_input: Any,
    max_tokens: int | None = None,
) -> AsyncIterator[str]:
    """Run the final worker in streaming mode; no structured parsing is applied."""
    result = await _generate(
        info, worker_contexts, previous_outputs, current_input, max_tokens, stream=True
    )
    if is_stream(result):
        return relay(result)
    if isinstance(result, str):
        logger.debug("Worker %d answered a streaming request in full", info.index + 1)
        return relay(single_fragment(result))
    raise AdapterContractError(
        f"Worker at index {info.index} returned {type(result).__name__}; "
        "expected a string or an async stream of strings."
    )

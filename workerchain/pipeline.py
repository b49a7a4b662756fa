"""
workerchain/pipeline.py
-----------------------
Declarative pipelines loaded from YAML.

Pipelines are defined under the ``pipelines`` key of pipelines.yaml:

    pipelines:
      MathSolver:
        description: "Extract an arithmetic problem, then solve it"
        steps:
          - name: Extractor
            context: "Extract the numbers and the operation as JSON."
          - name: Solver
            context: "Solve the problem. Answer with the number only."

Each pipeline is a named, ordered sequence of PipelineSteps.  A step may
name an existing Foundry agent with ``agent:``; otherwise it runs on the
chat client the caller supplies.  ``Pipeline.build`` turns the definition
into a runnable ``Agent``.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import yaml

from workerchain.adapters.base import ModelAdapter
from workerchain.agent import Agent
from workerchain.errors import ConfigurationError
from workerchain.worker import Worker

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "pipelines.yaml"

ModelFactory = Callable[[], ModelAdapter]


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class PipelineStep:
    """A single step in a pipeline: one worker's instructions."""

    name: str
    context: str
    agent: str | None = None
    """Display name of a deployed Foundry agent; None runs on the chat client."""


@dataclass
class Pipeline:
    """A named, ordered sequence of workers."""

    name: str
    description: str
    steps: list[PipelineStep] = field(default_factory=list)

    @property
    def step_summary(self) -> str:
        """Human-readable chain, e.g. 'Extractor → Solver'."""
        return " → ".join(s.name for s in self.steps)

    def build(
        self,
        model_factory: ModelFactory,
        foundry_factory: Callable[[str], ModelFactory] | None = None,
    ) -> Agent:
        """
        Create the Agent for this pipeline.

        Parameters
        ----------
        model_factory:
            Adapter factory for steps without an ``agent`` key, usually
            ``chat_model(client)``.
        foundry_factory:
            Maps a Foundry agent name to an adapter factory.  Defaults to
            ``workerchain.adapters.foundry.foundry_agent``.
        """
        if foundry_factory is None and any(s.agent for s in self.steps):
            from workerchain.adapters.foundry import foundry_agent

            foundry_factory = foundry_agent

        workers = []
        for step in self.steps:
            if step.agent:
                factory = foundry_factory(step.agent)
            else:
                factory = model_factory
            workers.append(Worker().model(factory).context(step.context))
        return Agent(*workers, name=self.name)


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


def _parse_step(pipeline_name: str, position: int, raw: Any) -> PipelineStep:
    if not isinstance(raw, dict) or not raw.get("context"):
        raise ConfigurationError(
            f"Pipeline '{pipeline_name}' step {position} must define a 'context'."
        )
    return PipelineStep(
        name=raw.get("name") or f"Worker {position}",
        context=raw["context"],
        agent=raw.get("agent"),
    )


def load_pipelines(config: dict[str, Any]) -> dict[str, Pipeline]:
    """
    Parse the ``pipelines`` section of a config dict into a mapping of
    pipeline-name → Pipeline.

    Returns
    -------
    dict[str, Pipeline]
        An empty dict if the ``pipelines`` key is absent.
    """
    result: dict[str, Pipeline] = {}
    for name, defn in (config.get("pipelines") or {}).items():
        defn = defn or {}
        steps = [
            _parse_step(name, i, raw)
            for i, raw in enumerate(defn.get("steps") or [], start=1)
        ]
        result[name] = Pipeline(
            name=name,
            description=defn.get("description", ""),
            steps=steps,
        )
    return result


def config_path() -> Path:
    return Path(os.environ.get("WORKERCHAIN_CONFIG", DEFAULT_CONFIG_PATH))


def load_pipelines_file(path: str | Path | None = None) -> dict[str, Pipeline]:
    """Read and parse a pipelines YAML file (WORKERCHAIN_CONFIG by default)."""
    path = Path(path) if path is not None else config_path()
    try:
        with open(path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigurationError(f"Pipeline config '{path}' does not exist.") from None
    pipelines = load_pipelines(config)
    logger.info("Loaded %d pipeline(s) from %s", len(pipelines), path)
    return pipelines

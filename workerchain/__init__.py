"""
workerchain
-----------
Chain language-model workers into a linear pipeline.

    from workerchain import agent, worker, chat_model

    extractor = worker().model(chat_model(client)).context("Extract the numbers as JSON.")
    solver = worker().model(chat_model(client)).context("Solve it. Answer with the number only.")

    chain = agent(extractor, solver)
    answer = await chain("2 and 2 added together")
"""

from workerchain.adapters import ChatClientAdapter, ModelAdapter, chat_model
from workerchain.agent import Agent, agent
from workerchain.errors import (
    AdapterContractError,
    ConfigurationError,
    StageExecutionError,
    ValidationError,
    WorkerChainError,
)
from workerchain.pipeline import Pipeline, PipelineStep, load_pipelines, load_pipelines_file
from workerchain.stream import collect_stream, is_stream, stream_to_string
from workerchain.worker import Worker, worker

__version__ = "0.1.0"

__all__ = [
    "Agent",
    "agent",
    "Worker",
    "worker",
    "ModelAdapter",
    "ChatClientAdapter",
    "chat_model",
    "Pipeline",
    "PipelineStep",
    "load_pipelines",
    "load_pipelines_file",
    "is_stream",
    "collect_stream",
    "stream_to_string",
    "WorkerChainError",
    "ConfigurationError",
    "ValidationError",
    "AdapterContractError",
    "StageExecutionError",
]

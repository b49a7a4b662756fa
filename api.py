"""
api.py
------
REST and WebSocket interface for worker-chain pipelines.

  GET  /health                     liveness probe
  GET  /pipelines                  configured pipelines
  POST /pipelines/{name}/run       run a pipeline, return the final answer
  WS   /ws/pipelines/{name}        run a pipeline, stream the final worker

Run with ``uvicorn api:app``.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, List, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect, Depends, APIRouter, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from starlette.requests import HTTPConnection
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError
from dotenv import load_dotenv

# Load environment variables before importing project modules
load_dotenv(override=True)

from workerchain import Agent, ConfigurationError, Pipeline, ValidationError, chat_model, load_pipelines_file
from workerchain.adapters.base import ModelAdapter
from workerchain.adapters.foundry import close_client
from workerchain.providers import build_client

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class RunRequest(BaseModel):
    input: str = Field(..., description="The input handed to the first worker")
    max_tokens: Optional[int] = Field(default=None, description="Per-worker output limit")

class RunResponse(BaseModel):
    answer: str = Field(..., description="The final worker's reply")

class PipelineInfo(BaseModel):
    name: str = Field(..., description="The pipeline name")
    description: str = Field(default="", description="What the pipeline does")
    steps: List[str] = Field(default_factory=list, description="Worker names in chain order")

class StreamEvent(BaseModel):
    type: str = Field(..., description="The type of the event ('answer', 'error', 'done')")
    text: str = Field(..., description="The content of the event")

# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_pipelines(conn: HTTPConnection) -> Dict[str, Pipeline]:
    """Dependency to inject the loaded pipeline definitions."""
    return conn.app.state.pipelines

def get_model_factory(conn: HTTPConnection) -> Callable[[], ModelAdapter]:
    """Dependency to inject the adapter factory used for chat-client steps."""
    return conn.app.state.model_factory

def _build_chain(
    name: str,
    pipelines: Dict[str, Pipeline],
    model_factory: Callable[[], ModelAdapter],
) -> Agent:
    pipeline = pipelines.get(name)
    if pipeline is None:
        raise HTTPException(status_code=404, detail=f"Pipeline '{name}' not found.")
    try:
        return pipeline.build(model_factory)
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=str(e))

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

pipeline_router = APIRouter(tags=["Pipelines"])
health_router = APIRouter(tags=["System"])

@health_router.get("/health")
async def health_check():
    """
    Simple health check endpoint to verify the API is running.
    """
    return {"status": "ok", "service": "workerchain API"}

@pipeline_router.get("/pipelines", response_model=List[PipelineInfo])
async def list_pipelines(pipelines: Dict[str, Pipeline] = Depends(get_pipelines)):
    """List the configured pipelines and their steps."""
    return [
        PipelineInfo(name=p.name, description=p.description, steps=[s.name for s in p.steps])
        for p in pipelines.values()
    ]

@pipeline_router.post("/pipelines/{name}/run", response_model=RunResponse)
async def run_pipeline_endpoint(
    name: str,
    request: RunRequest,
    pipelines: Dict[str, Pipeline] = Depends(get_pipelines),
    model_factory: Callable[[], ModelAdapter] = Depends(get_model_factory),
):
    """
    Run a pipeline to completion and return the final answer.
    """
    chain = _build_chain(name, pipelines, model_factory)
    try:
        answer = await chain.run(request.input, max_tokens=request.max_tokens)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except Exception as e:
        logger.exception("Error running pipeline '%s'", name)
        raise HTTPException(status_code=500, detail=str(e))
    return RunResponse(answer=answer)

@pipeline_router.websocket("/ws/pipelines/{name}")
async def websocket_pipeline_endpoint(
    websocket: WebSocket,
    name: str,
    pipelines: Dict[str, Pipeline] = Depends(get_pipelines),
    model_factory: Callable[[], ModelAdapter] = Depends(get_model_factory),
):
    """
    WebSocket endpoint streaming the final worker's reply.
    Expects JSON messages matching the RunRequest schema.
    Sends back JSON messages with event types: 'answer', 'error', 'done'.
    """
    await websocket.accept()

    try:
        chain = _build_chain(name, pipelines, model_factory)
    except HTTPException as e:
        await websocket.send_json(StreamEvent(type="error", text=e.detail).model_dump())
        await websocket.close()
        return

    try:
        while True:
            data = await websocket.receive_json()
            await handle_websocket_message(websocket, data, chain)
    except WebSocketDisconnect:
        logger.info("WebSocket client disconnected")
    except Exception:
        logger.exception("Unexpected WebSocket error")

async def handle_websocket_message(websocket: WebSocket, data: Dict[str, Any], chain: Agent):
    """Handles a single WebSocket message."""
    try:
        request = RunRequest(**data)
    except PydanticValidationError as e:
        await websocket.send_json(StreamEvent(type="error", text=f"Invalid request format: {e}").model_dump())
        return

    try:
        stream = await chain.run_stream(request.input, max_tokens=request.max_tokens)
        async with stream:
            async for fragment in stream:
                await websocket.send_json(StreamEvent(type="answer", text=fragment).model_dump())
        await websocket.send_json(StreamEvent(type="done", text="").model_dump())
    except ValidationError as e:
        await websocket.send_json(StreamEvent(type="error", text=str(e)).model_dump())
    except Exception as e:
        logger.exception("Error during stream")
        await websocket.send_json(StreamEvent(type="error", text=f"Internal server error: {e}").model_dump())

# ---------------------------------------------------------------------------
# Lifespan & App Setup
# ---------------------------------------------------------------------------

def create_app(
    pipelines: Optional[Dict[str, Pipeline]] = None,
    model_factory: Optional[Callable[[], ModelAdapter]] = None,
) -> FastAPI:
    """
    Factory function to create and configure the FastAPI application.

    With no arguments the lifespan loads pipelines from WORKERCHAIN_CONFIG and
    builds the chat client from MODEL_PROVIDER.  Passing both ``pipelines`` and
    ``model_factory`` skips that, which is how the tests run the API offline.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if pipelines is not None and model_factory is not None:
            app.state.pipelines = pipelines
            app.state.model_factory = model_factory
            yield
            return

        logger.info("Starting up workerchain API...")
        app.state.pipelines = pipelines if pipelines is not None else load_pipelines_file()
        async with build_client() as client:
            app.state.model_factory = chat_model(client)
            logger.info("Loaded %d pipeline(s).", len(app.state.pipelines))
            try:
                yield
            finally:
                await close_client()
        logger.info("workerchain API shut down.")

    app = FastAPI(
        title="workerchain API",
        description="REST API and WebSocket interface for worker-chain pipelines",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # In production, replace with specific origins
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(pipeline_router)

    return app

app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api:app", host="0.0.0.0", port=8000, reload=True)

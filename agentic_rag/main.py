# Run from project root: uvicorn agentic_rag.main:app --reload

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from agentic_rag.api.routes import router
from agentic_rag.core.errors import ServiceUnavailableError
from agentic_rag.services.agent_service import build_orchestrator

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tests may install their own orchestrator before startup
    if getattr(app.state, "orchestrator", None) is None:
        try:
            app.state.orchestrator = await build_orchestrator()
        except ServiceUnavailableError as e:
            logger.error("Agent not initialized: %s", e.message)
            app.state.orchestrator = None
    yield


app = FastAPI(title="Agentic RAG Backend", lifespan=lifespan)
app.include_router(router)

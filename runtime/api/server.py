"""
FastAPI application entry point for the COMPAS Navigator runtime.

Responsibilities:
- configure logging
- construct shared singletons (SessionStore, ExportStore, LogStore,
  completion / analysis backends, StageProgressionEngine, ConversationAgent)
- include session-related routes under /api

Start with:

    uvicorn runtime.api.server:app --reload
"""

import logging

from fastapi import FastAPI

from configs.settings import settings
from core.api.openai_client import SamplingParams
from core.compas.analysis import OpenAIAnalysisBackend
from core.compas.completion import OpenAICompletionBackend
from core.compas.progression import StageProgressionEngine, build_progression_policy
from core.compas.prompt_builder import PromptBuilder
from runtime.agents.conversation_agent import ConversationAgent
from runtime.store.export_store import ExportStore
from runtime.store.log_store import LogStore
from runtime.store.session_store import SessionStore
from . import session_routes


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


configure_logging(settings.log_level)


# ---------------------------------------------------------------------------
# Shared singletons
# ---------------------------------------------------------------------------

# JSONL event log under runtime/data/logs.
log_store = LogStore(log_dir=str(settings.runtime_data_dir / "logs"))


def _log_eviction(session) -> None:
    log_store.log_event(
        event_type="session_evicted",
        payload={"session_id": session.session_id, "stage": session.stage.value},
    )


# Session storage: in-memory only, with idle / count eviction.
session_store = SessionStore(
    max_idle_seconds=settings.session_max_idle_seconds,
    max_sessions=settings.max_sessions,
    on_evict=_log_eviction,
)

# Report exports under runtime/data/exports.
export_store = ExportStore(data_dir=str(settings.runtime_data_dir))

# Coaching replies and stage analysis, both configured with OPENAI.
completion_backend = OpenAICompletionBackend(
    SamplingParams(
        model=settings.openai_model,
        temperature=settings.chat_temperature,
        max_tokens=settings.max_tokens,
    )
)
analysis_backend = OpenAIAnalysisBackend(
    model=settings.analysis_model,
    temperature=settings.analysis_temperature,
    max_tokens=settings.max_tokens,
)

progression_engine = StageProgressionEngine(
    build_progression_policy(settings.progression_policy, analysis_backend)
)

# Main conversation agent used by the /api routes.
conversation_agent = ConversationAgent(
    session_store=session_store,
    completion_backend=completion_backend,
    progression_engine=progression_engine,
    prompt_builder=PromptBuilder(max_response_words=settings.max_response_words),
    log_store=log_store,
    completion_retries=settings.completion_retries,
)

# ---------------------------------------------------------------------------
# FastAPI app + route registration
# ---------------------------------------------------------------------------

app = FastAPI(title="COMPAS Navigator")

# Initialize the router module with our shared objects, then include it.
session_routes.init_routes(
    session_store=session_store,
    conversation_agent=conversation_agent,
    export_store=export_store,
)
app.include_router(session_routes.router, prefix="/api")

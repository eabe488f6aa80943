"""HTTP routes for interacting with the COMPAS Navigator runtime.

Exposes endpoints like:

- POST   /api/sessions                       -> new session_id + stage
- GET    /api/sessions/{id}                  -> session snapshot
- DELETE /api/sessions/{id}                  -> drop the session
- POST   /api/sessions/{id}/chat             -> one chat turn
- GET    /api/sessions/{id}/report           -> Markdown report
- POST   /api/sessions/{id}/artifacts        -> register an artifact
- DELETE /api/sessions/{id}/artifacts/{aid}  -> remove an artifact
- POST   /api/sessions/{id}/export/{format}  -> download markdown / json
- GET    /api/criteria                       -> stage criteria table

Handlers are plain `def` functions: FastAPI runs them in its threadpool,
so a slow model call for one session does not block other sessions.
"""

import logging

from fastapi import APIRouter, HTTPException, Response
from typing import Optional

from core.compas.stages import STAGE_CRITERIA, STAGE_ORDER
from exceptions.exceptions import (
    ArtifactValidationError,
    CollaboratorError,
    CollaboratorTimeout,
    SessionNotFound,
    SolutionStatementRejected,
    UnsupportedExportFormat,
)

from ..models.api_models import (
    ArtifactRequest,
    ChatRequest,
    ChatResponse,
    ErrorResponse,
    ReportResponse,
    SessionSnapshot,
    StartSessionResponse,
)
from ..store.export_store import ExportStore
from ..store.session_store import SessionStore
from ..agents.conversation_agent import ConversationAgent


logger = logging.getLogger(__name__)

# Router for all session-related endpoints
router = APIRouter()


# Module-level references, to be initialized by the server.
_SESSION_STORE: Optional[SessionStore] = None
_CONVERSATION_AGENT: Optional[ConversationAgent] = None
_EXPORT_STORE: Optional[ExportStore] = None


def init_routes(
    session_store: SessionStore,
    conversation_agent: ConversationAgent,
    export_store: ExportStore,
) -> None:
    """Initialize module-level references used by the route handlers."""
    global _SESSION_STORE, _CONVERSATION_AGENT, _EXPORT_STORE
    _SESSION_STORE = session_store
    _CONVERSATION_AGENT = conversation_agent
    _EXPORT_STORE = export_store


def _require_session_store() -> SessionStore:
    if _SESSION_STORE is None:
        raise HTTPException(
            status_code=500,
            detail="SessionStore is not configured on the server.",
        )
    return _SESSION_STORE


def _require_conversation_agent() -> ConversationAgent:
    if _CONVERSATION_AGENT is None:
        raise HTTPException(
            status_code=500,
            detail="ConversationAgent is not configured on the server.",
        )
    return _CONVERSATION_AGENT


def _require_export_store() -> ExportStore:
    if _EXPORT_STORE is None:
        raise HTTPException(
            status_code=500,
            detail="ExportStore is not configured on the server.",
        )
    return _EXPORT_STORE


def _not_found(session_id: str) -> HTTPException:
    logger.warning("[API] Session not found: session_id=%s", session_id)
    return HTTPException(status_code=404, detail="Session not found")


# --------------------------------------------------------
# Sessions
# --------------------------------------------------------


@router.post("/sessions", response_model=StartSessionResponse)
def start_session() -> StartSessionResponse:
    """Create a new session and return its ID and initial stage."""
    agent = _require_conversation_agent()
    session = agent.start_session()
    return StartSessionResponse(session_id=session.session_id, stage=session.stage.value)


@router.get("/sessions/{session_id}", response_model=SessionSnapshot)
def get_session(session_id: str) -> SessionSnapshot:
    agent = _require_conversation_agent()
    try:
        snapshot = agent.get_snapshot(session_id)
    except SessionNotFound:
        raise _not_found(session_id)
    return SessionSnapshot(**{k: snapshot[k] for k in SessionSnapshot.model_fields})


@router.delete("/sessions/{session_id}", status_code=204)
def delete_session(session_id: str) -> Response:
    session_store = _require_session_store()
    try:
        session_store.delete_session(session_id)
    except SessionNotFound:
        raise _not_found(session_id)
    return Response(status_code=204)


# --------------------------------------------------------
# Chat
# --------------------------------------------------------


@router.post("/sessions/{session_id}/chat", response_model=ChatResponse)
def chat(session_id: str, request: ChatRequest) -> ChatResponse:
    """Run one chat turn.

    Errors raised before the assistant reply exists fail the request:
    404 unknown session, 400 solution statement during objective
    definition, 502/504 when the coaching model is unavailable. Failures
    of the post-reply analysis only show up as `analysis_failed`.
    """
    agent = _require_conversation_agent()
    try:
        return agent.handle_user_message(session_id=session_id, message=request.message)

    except SessionNotFound:
        raise _not_found(session_id)

    except SolutionStatementRejected as e:
        logger.info("[API] Solution statement rejected for session_id=%s", session_id)
        raise HTTPException(
            status_code=400,
            detail=ErrorResponse(
                error="Solution statement detected",
                suggestions=e.suggestions,
                needs_rephrase=True,
            ).model_dump(),
        )

    except CollaboratorTimeout:
        raise HTTPException(status_code=504, detail="The coaching model timed out; please retry.")

    except CollaboratorError:
        raise HTTPException(status_code=502, detail="Failed to process message")

    except Exception:
        # Log unexpected errors with a full traceback for debugging.
        logger.exception("[API] Unexpected error for session_id=%s", session_id)
        raise


# --------------------------------------------------------
# Report + exports
# --------------------------------------------------------


@router.get("/sessions/{session_id}/report", response_model=ReportResponse)
def get_report(session_id: str) -> ReportResponse:
    agent = _require_conversation_agent()
    try:
        return ReportResponse(report=agent.get_report(session_id))
    except SessionNotFound:
        raise _not_found(session_id)


@router.post("/sessions/{session_id}/export/{export_format}")
def export_report(session_id: str, export_format: str) -> Response:
    session_store = _require_session_store()
    export_store = _require_export_store()
    try:
        with session_store.session_lock(session_id) as session:
            result = export_store.export(session, export_format)
    except SessionNotFound:
        raise _not_found(session_id)
    except UnsupportedExportFormat as e:
        raise HTTPException(status_code=400, detail=str(e))

    return Response(
        content=result.content,
        media_type=result.media_type,
        headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
    )


# --------------------------------------------------------
# Artifacts
# --------------------------------------------------------


@router.post("/sessions/{session_id}/artifacts")
def add_artifact(session_id: str, request: ArtifactRequest) -> dict:
    agent = _require_conversation_agent()
    try:
        artifact = agent.add_artifact(session_id, request)
    except SessionNotFound:
        raise _not_found(session_id)
    except ArtifactValidationError as e:
        raise HTTPException(
            status_code=400,
            detail={"error": "File validation failed", "errors": e.errors},
        )
    return {"artifact": artifact.model_dump(mode="json")}


@router.delete("/sessions/{session_id}/artifacts/{artifact_id}", status_code=204)
def remove_artifact(session_id: str, artifact_id: str) -> Response:
    agent = _require_conversation_agent()
    try:
        removed = agent.remove_artifact(session_id, artifact_id)
    except SessionNotFound:
        raise _not_found(session_id)
    if not removed:
        raise HTTPException(status_code=404, detail="Artifact not found")
    return Response(status_code=204)


# --------------------------------------------------------
# Criteria + health
# --------------------------------------------------------


@router.get("/criteria")
def get_criteria() -> dict:
    """Stage criteria table, in stage order."""
    return {
        "stages": [
            {"stage": stage.value, "title": STAGE_CRITERIA[stage].title, **STAGE_CRITERIA[stage].to_dict()}
            for stage in STAGE_ORDER
        ]
    }


@router.get("/healthz")
def health_check():
    """
    Simple health check endpoint for uptime monitoring.
    """
    return {"status": "ok"}

"""ConversationAgent implementation.

Responsible for:
- creating sessions and reading their state
- running one chat turn for a session
- registering artifacts and projecting the report

Turn flow (all under the session's lock):
- objective guard: while defining the objective, a solution statement is
  rejected before anything is recorded
- append the user's message
- build the stage-aware prompt and ask the completion backend for a reply
  (on failure: the user message stays, nothing else changes, the error is
  raised to the caller)
- append the assistant's reply
- let the StageProgressionEngine extract data and advance the stage
  (analysis failures are reported in the response, never raised)
"""

import logging
from typing import Any, Dict, Optional

from configs.settings import settings
from core.api.openai_client import SamplingParams
from core.compas.completion import CompletionBackend, complete_with_retry
from core.compas.objective_validator import validate_objective_statement
from core.compas.progression import ProgressionOutcome, StageProgressionEngine
from core.compas.prompt_builder import PromptBuilder
from core.compas.report import render_markdown
from core.compas.stages import Stage
from exceptions.exceptions import (
    ArtifactValidationError,
    CollaboratorError,
    SolutionStatementRejected,
)

from ..models.api_models import ArtifactRequest, ChatResponse, StageAnalysisOut
from ..models.session_models import Artifact, Session
from ..store.session_store import SessionStore


logger = logging.getLogger(__name__)


MAX_ARTIFACT_SIZE = 10 * 1024 * 1024  # 10MB
ALLOWED_ARTIFACT_TYPES = ("application/pdf", "text/csv", "application/json", "text/plain")
SENSITIVITY_LEVELS = ("normal", "high")


def validate_artifact(request: ArtifactRequest) -> None:
    """Raise ArtifactValidationError listing every problem with `request`."""
    errors = []
    if request.size > MAX_ARTIFACT_SIZE:
        errors.append(
            f"File size ({request.size} bytes) exceeds maximum allowed size (10MB)"
        )
    if request.mimetype not in ALLOWED_ARTIFACT_TYPES:
        errors.append(
            f"File type ({request.mimetype}) is not supported. "
            "Allowed types: PDF, CSV, JSON, TXT"
        )
    if request.sensitivity not in SENSITIVITY_LEVELS:
        errors.append(
            f"Sensitivity ({request.sensitivity}) must be one of: "
            + ", ".join(SENSITIVITY_LEVELS)
        )
    if errors:
        raise ArtifactValidationError(errors)


class ConversationAgent:
    """Per-turn pipeline for COMPAS Navigator.

    Parameters
    ----------
    session_store:
        Store used to look up sessions and serialize turns per session.
    completion_backend:
        Produces the assistant reply (see core.compas.completion).
    progression_engine:
        Decides extraction and stage advancement after each reply.
    prompt_builder:
        Renders the stage-aware system prompt. Defaults to a builder using
        the configured maximum response length.
    log_store:
        Sink for domain events (optional). Logging failures never affect
        the turn.
    sampling:
        Sampling parameters for the completion call.
    completion_retries:
        Extra attempts after a failed completion call.
    """

    def __init__(
        self,
        session_store: SessionStore,
        completion_backend: CompletionBackend,
        progression_engine: StageProgressionEngine,
        prompt_builder: Optional[PromptBuilder] = None,
        log_store: Optional[object] = None,
        sampling: Optional[SamplingParams] = None,
        completion_retries: int = 0,
        retry_wait: float = 1.0,
    ):
        self.session_store = session_store
        self.completion_backend = completion_backend
        self.progression_engine = progression_engine
        self.prompt_builder = prompt_builder or PromptBuilder(
            max_response_words=settings.max_response_words
        )
        self.log_store = log_store
        self.sampling = sampling
        self.completion_retries = completion_retries
        self.retry_wait = retry_wait

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def start_session(self) -> Session:
        session = self.session_store.create_session()
        self._log_event("session_created", {"session_id": session.session_id})
        return session

    def get_snapshot(self, session_id: str) -> Dict[str, Any]:
        """Deep copy of the session, taken while no turn is running."""
        with self.session_store.session_lock(session_id) as session:
            return session.snapshot()

    def get_report(self, session_id: str) -> str:
        with self.session_store.session_lock(session_id) as session:
            return render_markdown(session)

    # ------------------------------------------------------------------
    # Chat turn
    # ------------------------------------------------------------------

    def handle_user_message(self, session_id: str, message: str) -> ChatResponse:
        """Handle a single user message within the given session.

        Raises
        ------
        SessionNotFound
            Unknown session_id.
        SolutionStatementRejected
            Objective stage and the message describes a solution.
        CollaboratorError
            The completion call failed; only the user message was recorded.
        """
        with self.session_store.session_lock(session_id) as session:
            # (1) Objective guard, before anything is recorded.
            self._guard_objective(session, message)

            # (2) Record the user message.
            session.append_message("user", message)

            # (3) Ask the coaching model for a reply.
            payload = self.prompt_builder.build(session)
            try:
                reply = complete_with_retry(
                    self.completion_backend,
                    payload.system_prompt,
                    payload.turns,
                    self.sampling,
                    retries=self.completion_retries,
                    wait_multiplier=self.retry_wait,
                )
            except CollaboratorError as exc:
                logger.warning(
                    "[AGENT] Completion failed for session_id=%s stage=%s: %s",
                    session.session_id,
                    session.stage.value,
                    exc,
                )
                self._log_event(
                    "turn_failed",
                    {
                        "session_id": session.session_id,
                        "stage": session.stage.value,
                        "error": type(exc).__name__,
                    },
                )
                raise

            # (4) Record the reply, then run the progression policy.
            session.append_message("assistant", reply)
            outcome = self.progression_engine.apply(session, message, reply)
            self._log_outcome(session, outcome)

            return self._build_response(session, reply, outcome)

    def _guard_objective(self, session: Session, message: str) -> None:
        if session.stage != Stage.OBJECTIVE_DEFINITION:
            return

        validation = validate_objective_statement(message)
        if not validation.is_valid and validation.is_solution:
            self._log_event(
                "objective_rejected",
                {"session_id": session.session_id},
            )
            raise SolutionStatementRejected(message, validation.suggestions)

    def _build_response(
        self,
        session: Session,
        reply: str,
        outcome: ProgressionOutcome,
    ) -> ChatResponse:
        analysis_out = None
        if outcome.analysis is not None:
            analysis_out = StageAnalysisOut(
                should_progress=outcome.analysis.should_progress,
                progress_reason=outcome.analysis.progress_reason,
                extracted_data=dict(outcome.analysis.extracted_data),
                completion_percentage=outcome.analysis.completion_percentage,
                missing_information=list(outcome.analysis.missing_information),
            )

        return ChatResponse(
            message=reply,
            stage=session.stage.value,
            previous_stage=outcome.previous_stage.value,
            advanced=outcome.advanced,
            stage_analysis=analysis_out,
            analysis_failed=outcome.analysis_failed,
            analysis_error=outcome.failure_reason,
            current_stage_data=session.snapshot()["stage_data"][session.stage.value],
        )

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    def add_artifact(self, session_id: str, request: ArtifactRequest) -> Artifact:
        validate_artifact(request)
        with self.session_store.session_lock(session_id) as session:
            artifact = session.add_artifact(
                Artifact(
                    filename=request.filename,
                    mimetype=request.mimetype,
                    size=request.size,
                    storage_ref=request.storage_ref,
                    owner=request.owner,
                    sensitivity=request.sensitivity,
                    source=request.source,
                )
            )
        self._log_event(
            "artifact_added",
            {
                "session_id": session_id,
                "artifact_id": artifact.id,
                "sensitivity": artifact.sensitivity,
            },
        )
        return artifact

    def remove_artifact(self, session_id: str, artifact_id: str) -> bool:
        with self.session_store.session_lock(session_id) as session:
            return session.remove_artifact(artifact_id)

    # ------------------------------------------------------------------
    # Logging helpers
    # ------------------------------------------------------------------

    def _log_outcome(self, session: Session, outcome: ProgressionOutcome) -> None:
        if outcome.analysis_failed:
            self._log_event(
                "analysis_failed",
                {
                    "session_id": session.session_id,
                    "stage": outcome.previous_stage.value,
                    "reason": outcome.failure_reason,
                },
            )
        if outcome.advanced:
            self._log_event(
                "stage_advanced",
                {
                    "session_id": session.session_id,
                    "from": outcome.previous_stage.value,
                    "to": outcome.stage.value,
                },
            )
        self._log_event(
            "turn_completed",
            {
                "session_id": session.session_id,
                "stage": session.stage.value,
                "history_length": len(session.conversation_history),
            },
        )

    def _log_event(self, event_type: str, payload: dict) -> None:
        if self.log_store is None:
            return
        try:
            self.log_store.log_event(event_type=event_type, payload=payload)
        except Exception:
            # Logging failures should not affect main flow.
            logger.exception("[AGENT] Failed to log event %s", event_type)

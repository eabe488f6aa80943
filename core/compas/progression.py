"""
Stage progression: after each user/assistant exchange, decide whether the
current stage's exit criteria are met and what structured data to keep.

Two interchangeable policies are provided:

- KeywordProgressionPolicy: case-insensitive trigger phrases in the
  assistant's reply. No extra model call, never extracts data.
- AssistedProgressionPolicy: one extra request to an AnalysisBackend,
  which returns a StageAnalysis (progress verdict + extracted fields).

StageProgressionEngine runs the configured policy once per turn and
applies the result: merge extracted data, then advance. Analysis failures
(collaborator errors or anything else the policy raises) turn into a no-op
outcome flagged with analysis_failed; they are never raised to the caller
because the user already has a reply.

The engine does no locking of its own. Callers hold the per-session lock
(see SessionStore.session_lock) around the whole turn.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, Optional, Protocol

from core.compas.analysis import (
    HISTORY_WINDOW,
    AnalysisBackend,
    StageAnalysis,
    StageContext,
)
from core.compas.stages import Stage, get_criteria, missing_required_fields
from exceptions.exceptions import CollaboratorError

if TYPE_CHECKING:
    from runtime.models.session_models import Session


logger = logging.getLogger(__name__)


class ProgressionPolicy(Protocol):
    name: str

    def evaluate(
        self,
        session: "Session",
        user_message: str,
        assistant_response: str,
    ) -> StageAnalysis:
        """Judge the latest exchange. Must not mutate the session."""
        ...


# ---------------------------------------------------------------------------
# Keyword policy
# ---------------------------------------------------------------------------


def _any_of(*phrases: str) -> Callable[[str], bool]:
    return lambda text: any(p in text for p in phrases)


def _all_of(*checks: Callable[[str], bool]) -> Callable[[str], bool]:
    return lambda text: all(check(text) for check in checks)


# Literal substring triggers on the lower-cased reply. There is no negation
# handling: "that's not correct" still matches "correct".
KEYWORD_TRIGGERS: Dict[Stage, Callable[[str], bool]] = {
    Stage.CONTEXT_DISCOVERY: _any_of("yes, that's right", "correct"),
    Stage.OBJECTIVE_DEFINITION: _any_of("root cause", "problem statement"),
    Stage.METHOD_IDEATION: _all_of(_any_of("method"), _any_of("1.", "2.", "3.")),
    Stage.METHOD_SELECTION: _any_of("implementation plan"),
    Stage.IMPLEMENTATION_PLAN: _all_of(
        _any_of("performance measures"), _any_of("learning questions")
    ),
}


class KeywordProgressionPolicy:
    name = "keyword"

    def evaluate(self, session, user_message, assistant_response) -> StageAnalysis:
        trigger = KEYWORD_TRIGGERS.get(session.stage)
        matched = bool(trigger and trigger((assistant_response or "").lower()))
        missing = missing_required_fields(session.stage, session.current_stage_data())
        return StageAnalysis(
            should_progress=matched,
            progress_reason=(
                f"Trigger phrase for {session.stage.value} found in response"
                if matched
                else ""
            ),
            completion_percentage=100 if matched else 0,
            missing_information=missing,
        )


# ---------------------------------------------------------------------------
# Assisted policy
# ---------------------------------------------------------------------------


class AssistedProgressionPolicy:
    name = "assisted"

    def __init__(self, backend: AnalysisBackend, history_window: int = HISTORY_WINDOW) -> None:
        self.backend = backend
        self.history_window = history_window

    def build_context(self, session, user_message, assistant_response) -> StageContext:
        recent = session.conversation_history[-self.history_window:] if self.history_window else []
        return StageContext(
            stage=session.stage,
            criteria=get_criteria(session.stage),
            stage_data=copy.deepcopy(session.current_stage_data()),
            user_message=user_message,
            assistant_response=assistant_response,
            recent_history=[
                {"role": t.role, "content": t.content} for t in recent
            ],
        )

    def evaluate(self, session, user_message, assistant_response) -> StageAnalysis:
        context = self.build_context(session, user_message, assistant_response)
        return self.backend.analyze(context)


def build_progression_policy(
    name: str,
    analysis_backend: Optional[AnalysisBackend] = None,
) -> ProgressionPolicy:
    """Return the policy configured by name ("keyword" or "assisted")."""
    if name == "keyword":
        return KeywordProgressionPolicy()
    if name == "assisted":
        if analysis_backend is None:
            raise ValueError("The assisted progression policy needs an analysis backend.")
        return AssistedProgressionPolicy(analysis_backend)
    raise ValueError(f"Unknown progression policy: {name!r}")


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


@dataclass
class ProgressionOutcome:
    previous_stage: Stage
    stage: Stage
    advanced: bool = False
    analysis: Optional[StageAnalysis] = None
    analysis_failed: bool = False
    failure_reason: Optional[str] = None


class StageProgressionEngine:
    def __init__(self, policy: ProgressionPolicy) -> None:
        self.policy = policy

    def apply(
        self,
        session: "Session",
        user_message: str,
        assistant_response: str,
    ) -> ProgressionOutcome:
        """Evaluate the exchange once, then merge extracted data and advance.

        Both effects come from the same StageAnalysis; at most one stage
        advance happens per call.
        """
        previous = session.stage

        try:
            analysis = self.policy.evaluate(session, user_message, assistant_response)
        except CollaboratorError as exc:
            logger.warning(
                "[STAGE] Analysis failed for session_id=%s stage=%s policy=%s: %s",
                session.session_id,
                previous.value,
                self.policy.name,
                exc,
            )
            return ProgressionOutcome(
                previous_stage=previous,
                stage=previous,
                analysis_failed=True,
                failure_reason=str(exc),
            )
        except Exception as exc:
            logger.exception(
                "[STAGE] Unexpected analysis error for session_id=%s stage=%s policy=%s",
                session.session_id,
                previous.value,
                self.policy.name,
            )
            return ProgressionOutcome(
                previous_stage=previous,
                stage=previous,
                analysis_failed=True,
                failure_reason=f"{type(exc).__name__}: {exc}",
            )

        if analysis.extracted_data:
            session.merge_stage_data(previous, analysis.extracted_data)

        advanced = False
        if analysis.should_progress:
            advanced = session.advance_stage()
            if advanced:
                logger.info(
                    "[STAGE] session_id=%s %s -> %s reason=%r",
                    session.session_id,
                    previous.value,
                    session.stage.value,
                    analysis.progress_reason,
                )

        return ProgressionOutcome(
            previous_stage=previous,
            stage=session.stage,
            advanced=advanced,
            analysis=analysis,
        )

"""
Session-related models for the COMPAS Navigator runtime.

These describe:
- Turn entries (user / assistant) of the conversation transcript
- Artifact descriptors for documents the user registered
- ProgressMetrics (session start, first entry time per stage)
- the Session itself, together with the only operations allowed to
  mutate it (append_message, merge_stage_data, advance_stage, ...)
"""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from core.compas.stages import (
    INITIAL_STAGE,
    STAGE_ORDER,
    Stage,
    default_stage_record,
    next_stage,
    stage_index,
)
from exceptions.exceptions import InvalidTransition


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Turn(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime = Field(default_factory=utcnow)


class Artifact(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    filename: str
    mimetype: str = "text/plain"
    size: int = 0
    storage_ref: Optional[str] = None
    owner: str = "Unknown"
    sensitivity: Literal["normal", "high"] = "normal"
    source: str = "Manual upload"
    uploaded_at: datetime = Field(default_factory=utcnow)
    removed: bool = False


class ProgressMetrics(BaseModel):
    start_time: datetime = Field(default_factory=utcnow)
    # Set once per stage, the first time it becomes current.
    stage_start_times: Dict[Stage, datetime] = Field(default_factory=dict)


def _default_stage_data() -> Dict[Stage, Dict[str, Any]]:
    return {stage: default_stage_record(stage) for stage in STAGE_ORDER}


class Session(BaseModel):
    session_id: str = Field(default_factory=lambda: str(uuid4()))
    stage: Stage = INITIAL_STAGE
    stage_data: Dict[Stage, Dict[str, Any]] = Field(default_factory=_default_stage_data)
    conversation_history: List[Turn] = Field(default_factory=list)
    progress_metrics: ProgressMetrics = Field(default_factory=ProgressMetrics)
    artifacts: List[Artifact] = Field(default_factory=list)
    last_activity: datetime = Field(default_factory=utcnow)

    @classmethod
    def create(cls, session_id: Optional[str] = None) -> "Session":
        """Create a session at the initial stage with empty stage records."""
        session = cls(session_id=session_id) if session_id else cls()
        session.progress_metrics.stage_start_times[session.stage] = (
            session.progress_metrics.start_time
        )
        session.last_activity = session.progress_metrics.start_time
        return session

    # ------------------------------------------------------------------
    # Conversation
    # ------------------------------------------------------------------

    def append_message(self, role: str, content: str) -> Turn:
        """Append a transcript entry stamped with the current time.

        Timestamps never go backwards, even if the wall clock does.
        """
        now = utcnow()
        if self.conversation_history:
            now = max(now, self.conversation_history[-1].timestamp)
        turn = Turn(role=role, content=content, timestamp=now)
        self.conversation_history.append(turn)
        self.touch(now)
        return turn

    # ------------------------------------------------------------------
    # Stage content + transitions
    # ------------------------------------------------------------------

    def current_stage_data(self) -> Dict[str, Any]:
        return self.stage_data[self.stage]

    def merge_stage_data(self, stage: Stage, data: Dict[str, Any]) -> None:
        """Shallow-merge `data` into the record of `stage`.

        Same-named fields are overwritten, others are left alone. The
        `completed` flag is owned by the transitions and is never taken
        from `data`.
        """
        record = self.stage_data.setdefault(Stage(stage), default_stage_record(stage))
        for key, value in (data or {}).items():
            if key == "completed":
                continue
            record[key] = value
        self.touch()

    def advance_stage(self) -> bool:
        """Move to the next stage. Returns False (no-op) at the terminal stage."""
        target = next_stage(self.stage)
        if target is None:
            return False
        self._enter(target)
        return True

    def override_stage(self, target: Stage) -> None:
        """Operator jump forward to `target`, possibly skipping stages.

        Skipped stages keep completed=False. Raises InvalidTransition for
        the current stage or any stage behind it.
        """
        target = Stage(target)
        if stage_index(target) <= stage_index(self.stage):
            raise InvalidTransition(self.stage.value, target.value)
        self._enter(target)

    def _enter(self, target: Stage) -> None:
        self.stage_data[self.stage]["completed"] = True
        self.stage = target
        now = utcnow()
        self.progress_metrics.stage_start_times.setdefault(target, now)
        self.touch(now)

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    def add_artifact(self, artifact: Artifact) -> Artifact:
        self.artifacts.append(artifact)
        self._sync_context_artifacts()
        return artifact

    def remove_artifact(self, artifact_id: str) -> bool:
        """Logically remove an artifact. Returns False if it is unknown."""
        for artifact in self.artifacts:
            if artifact.id == artifact_id and not artifact.removed:
                artifact.removed = True
                self._sync_context_artifacts()
                return True
        return False

    def active_artifacts(self) -> List[Artifact]:
        return [a for a in self.artifacts if not a.removed]

    def _sync_context_artifacts(self) -> None:
        summary = [
            {
                "id": a.id,
                "filename": a.filename,
                "owner": a.owner,
                "sensitivity": a.sensitivity,
            }
            for a in self.active_artifacts()
        ]
        self.merge_stage_data(Stage.CONTEXT_DISCOVERY, {"artifacts": summary})

    # ------------------------------------------------------------------
    # Misc
    # ------------------------------------------------------------------

    def touch(self, when: Optional[datetime] = None) -> None:
        self.last_activity = when or utcnow()

    def is_complete(self) -> bool:
        return self.stage == Stage.COMPLETE

    def snapshot(self) -> Dict[str, Any]:
        """JSON-ready deep copy of the whole session."""
        return copy.deepcopy(self.model_dump(mode="json"))

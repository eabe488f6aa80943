"""
Stage-aware prompt construction for the coaching model.

PromptBuilder is pure: it reads a Session and the stage criteria and
returns the system instruction plus the ordered list of prior turns. It
never mutates the session.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Mapping

from core.compas.prompts import (
    AGENT_PERSONA,
    FIELD_DESCRIPTIONS,
    GLOBAL_INSTRUCTIONS,
    STAGE_BLOCK,
    STAGE_GOALS,
)
from core.compas.stages import STAGE_CRITERIA, Stage, StageCriteria, stages_through

if TYPE_CHECKING:
    from runtime.models.session_models import Session


DEFAULT_MAX_RESPONSE_WORDS = 300


@dataclass
class PromptPayload:
    system_prompt: str
    turns: List[Dict[str, str]] = field(default_factory=list)


def _to_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


class PromptBuilder:
    """Render the system prompt for the session's current stage.

    Parameters
    ----------
    persona:
        Fixed description of the agent's role and tone.
    max_response_words:
        Global response-length limit written into every prompt.
    criteria:
        Stage criteria table (defaults to STAGE_CRITERIA).
    """

    def __init__(
        self,
        persona: str = AGENT_PERSONA,
        max_response_words: int = DEFAULT_MAX_RESPONSE_WORDS,
        criteria: Mapping[Stage, StageCriteria] = STAGE_CRITERIA,
    ) -> None:
        self.persona = persona
        self.max_response_words = max_response_words
        self.criteria = criteria

    def build(self, session: "Session") -> PromptPayload:
        return PromptPayload(
            system_prompt=self.build_system_prompt(session),
            turns=[
                {"role": turn.role, "content": turn.content}
                for turn in session.conversation_history
            ],
        )

    def build_system_prompt(self, session: "Session") -> str:
        sections = [
            self.persona,
            f"Current Stage: {session.stage.value}",
            self._stage_block(session.stage),
            self._known_data_block(session),
            self._artifact_block(session),
            GLOBAL_INSTRUCTIONS.format(max_words=self.max_response_words).strip(),
        ]
        return "\n\n".join(s.strip() for s in sections if s)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _stage_block(self, stage: Stage) -> str:
        criteria = self.criteria[stage]
        required_lines = [
            f"- {name}: {FIELD_DESCRIPTIONS.get(name, name)}"
            for name in criteria.required
        ]
        if criteria.minimum_count is not None:
            required_lines.append(f"- Minimum: {criteria.minimum_count.describe()}")

        return STAGE_BLOCK.format(
            title_upper=criteria.title.upper(),
            time_estimate=criteria.time_estimate,
            goal=STAGE_GOALS.get(stage.value, ""),
            required="\n".join(required_lines),
            progress_trigger=criteria.progress_trigger,
        )

    def _known_data_block(self, session: "Session") -> str:
        lines = ["Known Information (do not ask for it again):"]
        for stage in stages_through(session.stage):
            label = "Current Status" if stage == session.stage else self.criteria[stage].title
            record = {
                key: value
                for key, value in session.stage_data.get(stage, {}).items()
                if key != "completed"
            }
            lines.append(f"{label}: {_to_json(record)}")
        return "\n".join(lines)

    def _artifact_block(self, session: "Session") -> str:
        artifacts = [
            {
                "filename": a.filename,
                "type": a.mimetype,
                "owner": a.owner,
                "sensitivity": a.sensitivity,
                "source": a.source,
            }
            for a in session.active_artifacts()
        ]
        if not artifacts:
            return ""
        return f"Artifacts Inventory: {_to_json(artifacts)}"

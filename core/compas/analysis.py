"""
Stage analysis: the structured result the assisted progression policy
works with, and the collaborator that produces it.

1. StageContext is everything the analysis model needs to judge the
   latest exchange: current stage, its criteria, the data gathered so far,
   the latest user message / assistant response and a few recent turns.

2. StageAnalysis is the validated answer:

       {
         "shouldProgress": true,
         "progressReason": "...",
         "extractedData": {"rootProblem": "..."},
         "completionPercentage": 80,
         "missingInformation": ["problemStatement"]
       }

   Anything that is not a JSON object of this shape is rejected with
   CollaboratorMalformedOutput; a partial parse is never used.

3. OpenAIAnalysisBackend renders ANALYSIS_PROMPT and asks the model for
   that JSON object.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.api import openai_client
from core.compas.prompts import ANALYSIS_PROMPT
from core.compas.stages import Stage, StageCriteria


# Number of transcript entries sent along with the analysis request.
HISTORY_WINDOW = 4


# ---------------------------------------------------------------------------
# Result + context
# ---------------------------------------------------------------------------


class StageAnalysis(BaseModel):
    """Validated outcome of one stage analysis."""

    model_config = ConfigDict(populate_by_name=True)

    should_progress: bool = Field(alias="shouldProgress")
    progress_reason: str = Field(default="", alias="progressReason")
    extracted_data: Dict[str, Any] = Field(default_factory=dict, alias="extractedData")
    completion_percentage: float = Field(
        default=0, ge=0, le=100, alias="completionPercentage"
    )
    missing_information: List[str] = Field(
        default_factory=list, alias="missingInformation"
    )

    @field_validator("progress_reason", mode="before")
    @classmethod
    def _reason_none_to_empty(cls, value):
        return "" if value is None else value

    @field_validator("extracted_data", mode="before")
    @classmethod
    def _data_none_to_empty(cls, value):
        return {} if value is None else value

    @field_validator("missing_information", mode="before")
    @classmethod
    def _missing_none_to_empty(cls, value):
        return [] if value is None else value


@dataclass
class StageContext:
    stage: Stage
    criteria: StageCriteria
    stage_data: Dict[str, Any]
    user_message: str
    assistant_response: str
    recent_history: List[Dict[str, str]] = field(default_factory=list)


class AnalysisBackend(Protocol):
    """
    Abstract backend interface for stage analysis.

    Implementations may use:
    - OpenAI
    - other LLMs
    - canned answers in tests

    analyze() must not mutate the context. It raises one of the
    CollaboratorError subclasses on failure.
    """

    def analyze(self, context: StageContext) -> StageAnalysis:
        ...


# ---------------------------------------------------------------------------
# OpenAI backend
# ---------------------------------------------------------------------------


def render_analysis_prompt(context: StageContext) -> str:
    return ANALYSIS_PROMPT.format(
        stage=context.stage.value,
        criteria=json.dumps(context.criteria.to_dict(), indent=2),
        stage_data=json.dumps(context.stage_data, indent=2, ensure_ascii=False, default=str),
        user_message=context.user_message,
        assistant_response=context.assistant_response,
        history=json.dumps(context.recent_history, indent=2, ensure_ascii=False),
    ).strip()


class OpenAIAnalysisBackend:
    """AnalysisBackend that asks an OpenAI chat model for the JSON verdict."""

    def __init__(
        self,
        model: Optional[str] = None,
        temperature: float = 0.3,
        max_tokens: int = 1000,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    def analyze(self, context: StageContext) -> StageAnalysis:
        prompt = render_analysis_prompt(context)
        return openai_client.send_request_to_gpt(
            prompt,
            structured_output=StageAnalysis,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

"""
HTTP request/response models for the COMPAS Navigator runtime API.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class StartSessionResponse(BaseModel):
    session_id: str
    stage: str


class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=10_000)


class StageAnalysisOut(BaseModel):
    should_progress: bool
    progress_reason: str = ""
    extracted_data: Dict[str, Any] = Field(default_factory=dict)
    completion_percentage: float = 0
    missing_information: List[str] = Field(default_factory=list)


class ChatResponse(BaseModel):
    """
    Result of one chat turn:

    - message: the assistant reply
    - stage / previous_stage: stage after and before the turn
    - advanced: whether this turn moved the session forward
    - stage_analysis: the progression verdict (absent if analysis failed)
    - analysis_failed / analysis_error: set when the post-reply analysis
      could not be used; the turn itself still succeeded
    """
    message: str
    stage: str
    previous_stage: str
    advanced: bool = False
    stage_analysis: Optional[StageAnalysisOut] = None
    analysis_failed: bool = False
    analysis_error: Optional[str] = None
    current_stage_data: Dict[str, Any] = Field(default_factory=dict)


class SessionSnapshot(BaseModel):
    session_id: str
    stage: str
    stage_data: Dict[str, Dict[str, Any]]
    conversation_history: List[Dict[str, Any]]
    progress_metrics: Dict[str, Any]
    artifacts: List[Dict[str, Any]]


class ReportResponse(BaseModel):
    report: str


class ArtifactRequest(BaseModel):
    filename: str = Field(min_length=1, max_length=255)
    mimetype: str
    size: int = Field(ge=0)
    owner: str = "Unknown"
    sensitivity: str = "normal"
    source: str = "Manual upload"
    storage_ref: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str
    suggestions: List[str] = Field(default_factory=list)
    needs_rephrase: bool = False

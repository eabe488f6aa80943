"""
COMPAS stages and their completion criteria.

The stage order is fixed:

    context_discovery -> objective_definition -> method_ideation
        -> method_selection -> implementation_plan -> complete

Everything that depends on the order (next stage, required fields,
default records) reads it from STAGE_CRITERIA, so adding or reordering a
stage is a single-table edit.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Stage(str, Enum):
    CONTEXT_DISCOVERY = "context_discovery"
    OBJECTIVE_DEFINITION = "objective_definition"
    METHOD_IDEATION = "method_ideation"
    METHOD_SELECTION = "method_selection"
    IMPLEMENTATION_PLAN = "implementation_plan"
    COMPLETE = "complete"


INITIAL_STAGE = Stage.CONTEXT_DISCOVERY
TERMINAL_STAGE = Stage.COMPLETE


@dataclass(frozen=True)
class MinimumCount:
    """'At least `minimum` items in `field_name`' rule."""

    field_name: str
    minimum: int

    def describe(self) -> str:
        return f"at least {self.minimum} {self.field_name}"


@dataclass(frozen=True)
class StageCriteria:
    stage: Stage
    title: str
    required: Tuple[str, ...]
    progress_trigger: str
    time_estimate: str
    next_stage: Optional[Stage]
    minimum_count: Optional[MinimumCount] = None
    defaults: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "required": list(self.required),
            "progressTrigger": self.progress_trigger,
            "nextStage": self.next_stage.value if self.next_stage else None,
            "timeEstimate": self.time_estimate,
        }
        if self.minimum_count is not None:
            data["minimumCount"] = {
                "field": self.minimum_count.field_name,
                "minimum": self.minimum_count.minimum,
            }
        return data


STAGE_CRITERIA: Dict[Stage, StageCriteria] = {
    Stage.CONTEXT_DISCOVERY: StageCriteria(
        stage=Stage.CONTEXT_DISCOVERY,
        title="Context Discovery",
        required=("situationDescription", "stakeholders", "constraints"),
        progress_trigger="User confirms the restated situation is accurate",
        time_estimate="5-10 minutes",
        next_stage=Stage.OBJECTIVE_DEFINITION,
        defaults={
            "situationDescription": "",
            "stakeholders": [],
            "constraints": [],
            "artifacts": [],
        },
    ),
    Stage.OBJECTIVE_DEFINITION: StageCriteria(
        stage=Stage.OBJECTIVE_DEFINITION,
        title="Objective Definition",
        required=("rootProblem", "problemStatement"),
        progress_trigger="Clear problem statement identified (not solution)",
        time_estimate="3-5 minutes",
        next_stage=Stage.METHOD_IDEATION,
        defaults={
            "rootProblem": "",
            "problemStatement": "",
        },
    ),
    Stage.METHOD_IDEATION: StageCriteria(
        stage=Stage.METHOD_IDEATION,
        title="Method Ideation",
        required=("methods",),
        progress_trigger="At least 2 distinct methods proposed with rationales",
        time_estimate="5-7 minutes",
        next_stage=Stage.METHOD_SELECTION,
        minimum_count=MinimumCount(field_name="methods", minimum=2),
        defaults={
            "methods": [],
        },
    ),
    Stage.METHOD_SELECTION: StageCriteria(
        stage=Stage.METHOD_SELECTION,
        title="Method Selection",
        required=("chosenMethod", "methodRationale"),
        progress_trigger="User selects a method or accepts recommendation",
        time_estimate="2-3 minutes",
        next_stage=Stage.IMPLEMENTATION_PLAN,
        defaults={
            "chosenMethod": None,
            "methodRationale": "",
        },
    ),
    Stage.IMPLEMENTATION_PLAN: StageCriteria(
        stage=Stage.IMPLEMENTATION_PLAN,
        title="Implementation Plan",
        required=("implementationSteps", "timeline", "performanceMeasures"),
        progress_trigger="Complete implementation plan with steps, timeline, and metrics",
        time_estimate="5-7 minutes",
        next_stage=Stage.COMPLETE,
        defaults={
            "implementationSteps": [],
            "timeline": "",
            "performanceMeasures": [],
            "learningQuestions": [],
        },
    ),
    Stage.COMPLETE: StageCriteria(
        stage=Stage.COMPLETE,
        title="Completion",
        required=("finalReport",),
        progress_trigger="Report generated and approved",
        time_estimate="2-3 minutes",
        next_stage=None,
        defaults={
            "finalReport": "",
        },
    ),
}


def _build_order(criteria: Dict[Stage, StageCriteria]) -> List[Stage]:
    order = [INITIAL_STAGE]
    while True:
        nxt = criteria[order[-1]].next_stage
        if nxt is None or nxt in order:
            break
        order.append(nxt)
    if (
        len(order) != len(Stage)
        or order[-1] != TERMINAL_STAGE
        or criteria[order[-1]].next_stage is not None
    ):
        raise RuntimeError(
            "STAGE_CRITERIA next_stage links must visit every stage once and end at "
            f"{TERMINAL_STAGE.value}; got {[s.value for s in order]}"
        )
    return order


# Derived from the next_stage links.
STAGE_ORDER: List[Stage] = _build_order(STAGE_CRITERIA)


def get_criteria(stage: Stage) -> StageCriteria:
    return STAGE_CRITERIA[Stage(stage)]


def next_stage(stage: Stage) -> Optional[Stage]:
    """Return the stage that follows `stage`, or None for the terminal stage."""
    return STAGE_CRITERIA[Stage(stage)].next_stage


def stage_index(stage: Stage) -> int:
    """Position of `stage` in the fixed order (0 = context_discovery)."""
    return STAGE_ORDER.index(Stage(stage))


def stages_through(stage: Stage) -> List[Stage]:
    """All stages up to and including `stage`, in order."""
    return STAGE_ORDER[: stage_index(stage) + 1]


def default_stage_record(stage: Stage) -> Dict[str, Any]:
    """Fresh, empty record for `stage` (deep copy of the defaults)."""
    record = copy.deepcopy(STAGE_CRITERIA[Stage(stage)].defaults)
    record["completed"] = False
    return record


def missing_required_fields(stage: Stage, record: Dict[str, Any]) -> List[str]:
    """Required fields of `stage` that are still empty in `record`.

    A minimum-count rule is reported as a missing item as well, e.g.
    "methods (at least 2)".
    """
    criteria = STAGE_CRITERIA[Stage(stage)]
    missing = [name for name in criteria.required if _is_empty(record.get(name))]

    rule = criteria.minimum_count
    if rule is not None and rule.field_name not in missing:
        value = record.get(rule.field_name) or []
        if not isinstance(value, list) or len(value) < rule.minimum:
            missing.append(f"{rule.field_name} (at least {rule.minimum})")
    return missing


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, dict, tuple)):
        return len(value) == 0
    return False

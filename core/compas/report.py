"""
Report projection: Session -> Markdown report / JSON document.

Both functions only read the session. The output depends on the session
content alone (no "generated now" clock), so projecting an unchanged
session twice gives identical output.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from core.compas.stages import STAGE_CRITERIA, STAGE_ORDER, Stage

if TYPE_CHECKING:
    from runtime.models.session_models import Session


PLACEHOLDER = "Not yet provided"

NEXT_STEPS = [
    "Review and validate this plan with key stakeholders",
    "Secure necessary resources and approvals",
    "Begin with the first implementation step",
    "Establish measurement and monitoring systems",
    "Schedule regular check-ins to assess progress",
]


# ---------------------------------------------------------------------------
# Value formatting
# ---------------------------------------------------------------------------


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict, tuple)):
        return len(value) == 0
    return False


def _inline(value: Any) -> str:
    """One-line rendering of any JSON-like value."""
    if _is_blank(value):
        return PLACEHOLDER
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, dict):
        return ", ".join(
            f"{key}: {_inline(item)}" for key, item in value.items() if not _is_blank(item)
        ) or PLACEHOLDER
    if isinstance(value, (list, tuple)):
        return "; ".join(_inline(item) for item in value)
    return str(value)


def _bullets(values: Any) -> List[str]:
    if _is_blank(values):
        return [f"- {PLACEHOLDER}"]
    if not isinstance(values, (list, tuple)):
        values = [values]
    return [f"- {_inline(v)}" for v in values]


def _field(item: Any, *keys: str) -> Optional[Any]:
    if not isinstance(item, dict):
        return None
    for key in keys:
        if not _is_blank(item.get(key)):
            return item[key]
    return None


def _numbered(items: Any, label: str, detail_keys: List[tuple]) -> List[str]:
    """Numbered entries; dict items get one detail line per (title, key)."""
    if _is_blank(items):
        return [PLACEHOLDER]
    if not isinstance(items, (list, tuple)):
        items = [items]

    lines: List[str] = []
    for i, item in enumerate(items, start=1):
        if isinstance(item, dict):
            name = _field(item, "name", "title", "metric") or f"{label} {i}"
            lines.append(f"{i}. **{_inline(name)}**")
            for title, key in detail_keys:
                lines.append(f"   - **{title}:** {_inline(item.get(key))}")
        else:
            lines.append(f"{i}. {_inline(item)}")
    return lines


def _elapsed_minutes(session: "Session") -> int:
    start = session.progress_metrics.start_time
    if not session.conversation_history:
        return 0
    end = session.conversation_history[-1].timestamp
    return max(0, round((end - start).total_seconds() / 60))


# ---------------------------------------------------------------------------
# Sections, one per stage
# ---------------------------------------------------------------------------


def _context_section(data: Dict[str, Any], session: "Session") -> List[str]:
    artifacts = [
        f"- {a.filename} ({a.owner}, {a.sensitivity} sensitivity)"
        for a in session.active_artifacts()
    ]
    return [
        "**Challenge Description:**",
        _inline(data.get("situationDescription")),
        "",
        "**Key Stakeholders:**",
        *_bullets(data.get("stakeholders")),
        "",
        "**Constraints & Limitations:**",
        *_bullets(data.get("constraints")),
        "",
        "**Supporting Artifacts:**",
        *(artifacts or [f"- {PLACEHOLDER}"]),
    ]


def _objective_section(data: Dict[str, Any], session: "Session") -> List[str]:
    return [
        "**Root Problem Identified:**",
        _inline(data.get("rootProblem")),
        "",
        "**Problem Statement:**",
        _inline(data.get("problemStatement")),
    ]


def _ideation_section(data: Dict[str, Any], session: "Session") -> List[str]:
    return [
        "**Proposed Methods:**",
        *_numbered(
            data.get("methods"),
            "Method",
            [
                ("Approach", "description"),
                ("Rationale", "rationale"),
                ("Implementation Complexity", "complexity"),
            ],
        ),
    ]


def _selection_section(data: Dict[str, Any], session: "Session") -> List[str]:
    chosen = data.get("chosenMethod")
    if isinstance(chosen, dict):
        chosen = _field(chosen, "name", "title") or chosen
    return [
        "**Chosen Approach:**",
        _inline(chosen),
        "",
        "**Selection Rationale:**",
        _inline(data.get("methodRationale")),
    ]


def _plan_section(data: Dict[str, Any], session: "Session") -> List[str]:
    return [
        "**Action Steps:**",
        *_numbered(
            data.get("implementationSteps"),
            "Step",
            [
                ("Owner", "owner"),
                ("Timeline", "timeline"),
                ("Description", "description"),
                ("Resources", "resources"),
            ],
        ),
        "",
        "**Overall Timeline:**",
        _inline(data.get("timeline")),
        "",
        "**Performance Measures:**",
        *_numbered(
            data.get("performanceMeasures"),
            "Metric",
            [
                ("Target", "target"),
                ("Baseline", "baseline"),
                ("Collection Method", "collection"),
                ("Frequency", "frequency"),
            ],
        ),
        "",
        "**Learning Questions:**",
        *_bullets(data.get("learningQuestions")),
    ]


def _completion_section(data: Dict[str, Any], session: "Session") -> List[str]:
    if session.is_complete():
        status = "Complete"
    else:
        status = f"In progress (current stage: {STAGE_CRITERIA[session.stage].title})"
    return [
        f"**Status:** {status}",
        "",
        "**Final Report Notes:**",
        _inline(data.get("finalReport")),
    ]


SECTION_RENDERERS = {
    Stage.CONTEXT_DISCOVERY: _context_section,
    Stage.OBJECTIVE_DEFINITION: _objective_section,
    Stage.METHOD_IDEATION: _ideation_section,
    Stage.METHOD_SELECTION: _selection_section,
    Stage.IMPLEMENTATION_PLAN: _plan_section,
    Stage.COMPLETE: _completion_section,
}


# ---------------------------------------------------------------------------
# Public functions
# ---------------------------------------------------------------------------


def render_markdown(session: "Session") -> str:
    """Render the COMPAS report for `session` as Markdown."""
    context = session.stage_data.get(Stage.CONTEXT_DISCOVERY, {})
    title = _inline(context.get("situationDescription"))
    if title == PLACEHOLDER:
        title = "Challenge Analysis"

    lines = [
        f"# COMPAS Report – {title}",
        "",
        (
            f"*Session {session.session_id} | Started "
            f"{session.progress_metrics.start_time.isoformat()} | "
            f"Total Session Time: {_elapsed_minutes(session)} minutes*"
        ),
        "",
        "## Executive Summary",
        "",
        (
            "This report provides a structured analysis and actionable solution "
            "for the identified nonprofit challenge using the COMPAS (Context, "
            "Objective, Method, Plan, Assessment) framework."
        ),
    ]

    for number, stage in enumerate(STAGE_ORDER, start=1):
        data = session.stage_data.get(stage, {})
        lines.extend(["", f"## {number}. {STAGE_CRITERIA[stage].title}", ""])
        lines.extend(SECTION_RENDERERS[stage](data, session))

    lines.extend(["", "## Next Steps for Implementation", ""])
    lines.extend(f"{i}. {step}" for i, step in enumerate(NEXT_STEPS, start=1))
    lines.extend(
        [
            "",
            "---",
            "",
            (
                "*This report was generated using the COMPAS Navigator framework, "
                "designed for nonprofit organizations to transform challenges into "
                "actionable solutions.*"
            ),
        ]
    )
    return "\n".join(lines) + "\n"


def render_json(session: "Session") -> Dict[str, Any]:
    """Structured export of the same content as the Markdown report."""
    snapshot = session.snapshot()
    return {
        "session_id": snapshot["session_id"],
        "stage": snapshot["stage"],
        "progress_metrics": snapshot["progress_metrics"],
        "elapsed_minutes": _elapsed_minutes(session),
        "stages": [
            {
                "stage": stage.value,
                "title": STAGE_CRITERIA[stage].title,
                "completed": bool(snapshot["stage_data"][stage.value].get("completed")),
                "data": {
                    key: value
                    for key, value in snapshot["stage_data"][stage.value].items()
                    if key != "completed"
                },
            }
            for stage in STAGE_ORDER
        ],
        "artifacts": [a for a in snapshot["artifacts"] if not a["removed"]],
        "conversation_turns": len(snapshot["conversation_history"]),
    }


def render_json_text(session: "Session") -> str:
    return json.dumps(render_json(session), indent=2, ensure_ascii=False) + "\n"

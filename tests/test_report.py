"""Tests for core.compas.report (Markdown + JSON projections)."""

import json
from datetime import timedelta

from core.compas.report import (
    PLACEHOLDER,
    render_json,
    render_json_text,
    render_markdown,
)
from core.compas.stages import STAGE_CRITERIA, STAGE_ORDER, Stage
from runtime.models.session_models import Artifact, Turn


def _filled_session(session):
    session.merge_stage_data(
        Stage.CONTEXT_DISCOVERY,
        {
            "situationDescription": "Email overload at a food bank",
            "stakeholders": ["Volunteers", "Donors"],
            "constraints": ["No budget"],
        },
    )
    session.advance_stage()
    session.merge_stage_data(
        Stage.OBJECTIVE_DEFINITION,
        {"rootProblem": "Unrouted inbox", "problemStatement": "We lose 20 hours a month"},
    )
    session.advance_stage()
    session.merge_stage_data(
        Stage.METHOD_IDEATION,
        {
            "methods": [
                {"name": "Triage rules", "description": "Filters", "rationale": "Cheap"},
                {"name": "Shared inbox", "description": "Rota", "rationale": "Simple"},
            ]
        },
    )
    session.advance_stage()
    session.merge_stage_data(
        Stage.METHOD_SELECTION,
        {"chosenMethod": {"name": "Triage rules"}, "methodRationale": "Fastest"},
    )
    session.advance_stage()
    session.merge_stage_data(
        Stage.IMPLEMENTATION_PLAN,
        {
            "implementationSteps": [{"name": "Write rules", "owner": "Ops", "timeline": "Week 1"}],
            "timeline": "4 weeks",
            "performanceMeasures": [{"metric": "Hours spent", "target": "5/month"}],
            "learningQuestions": ["Do rules misroute urgent mail?"],
        },
    )
    session.advance_stage()
    return session


class TestRenderMarkdown:
    def test_empty_session_uses_placeholders(self, session):
        report = render_markdown(session)
        assert report.startswith("# COMPAS Report – Challenge Analysis")
        assert PLACEHOLDER in report
        assert "**Status:** In progress (current stage: Context Discovery)" in report
        assert session.session_id in report

    def test_sections_in_stage_order(self, session):
        report = render_markdown(session)
        positions = [
            report.index(f"## {n}. {STAGE_CRITERIA[stage].title}")
            for n, stage in enumerate(STAGE_ORDER, start=1)
        ]
        assert positions == sorted(positions)
        assert report.index("## Executive Summary") < positions[0]
        assert report.index("## Next Steps for Implementation") > positions[-1]

    def test_filled_session(self, session):
        report = render_markdown(_filled_session(session))
        assert report.startswith("# COMPAS Report – Email overload at a food bank")
        assert "- Volunteers" in report
        assert "Unrouted inbox" in report
        assert "1. **Triage rules**" in report
        assert "2. **Shared inbox**" in report
        assert "   - **Rationale:** Cheap" in report
        assert "**Chosen Approach:**\nTriage rules" in report
        assert "1. **Hours spent**" in report
        assert "   - **Target:** 5/month" in report
        assert "- Do rules misroute urgent mail?" in report
        assert "**Status:** Complete" in report

    def test_artifacts_listed(self, session):
        session.add_artifact(Artifact(filename="donors.csv", owner="Ops", sensitivity="high"))
        report = render_markdown(session)
        assert "- donors.csv (Ops, high sensitivity)" in report

    def test_idempotent_and_non_mutating(self, session):
        session.append_message("user", "We struggle with email")
        before = session.snapshot()
        first = render_markdown(session)
        second = render_markdown(session)
        assert first == second
        assert session.snapshot() == before

    def test_elapsed_minutes_from_history(self, session):
        start = session.progress_metrics.start_time
        session.conversation_history.append(
            Turn(role="user", content="hi", timestamp=start + timedelta(minutes=12))
        )
        assert "Total Session Time: 12 minutes" in render_markdown(session)


class TestRenderJson:
    def test_structure(self, session):
        data = render_json(_filled_session(session))
        assert data["session_id"] == session.session_id
        assert data["stage"] == "complete"
        assert [s["stage"] for s in data["stages"]] == [s.value for s in STAGE_ORDER]
        assert data["stages"][0]["completed"] is True
        assert data["stages"][-1]["completed"] is False
        assert "completed" not in data["stages"][1]["data"]
        assert data["stages"][1]["data"]["rootProblem"] == "Unrouted inbox"

    def test_removed_artifacts_excluded(self, session):
        keep = session.add_artifact(Artifact(filename="a.txt"))
        drop = session.add_artifact(Artifact(filename="b.txt"))
        session.remove_artifact(drop.id)
        assert [a["id"] for a in render_json(session)["artifacts"]] == [keep.id]

    def test_text_is_valid_json(self, session):
        session.append_message("user", "Hi")
        text = render_json_text(session)
        assert json.loads(text)["conversation_turns"] == 1
        assert text == render_json_text(session)

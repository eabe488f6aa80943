"""Tests for runtime.models.session_models.Session and its mutations."""

from datetime import timedelta
from unittest.mock import patch

import pytest

from core.compas.stages import STAGE_ORDER, Stage
from exceptions.exceptions import InvalidTransition
from runtime.models import session_models
from runtime.models.session_models import Artifact, Session


class TestCreate:
    def test_initial_state(self, session):
        assert session.stage == Stage.CONTEXT_DISCOVERY
        assert session.is_complete() is False
        assert session.conversation_history == []
        assert set(session.stage_data) == set(STAGE_ORDER)
        assert session.stage_data[Stage.OBJECTIVE_DEFINITION] == {
            "rootProblem": "",
            "problemStatement": "",
            "completed": False,
        }

    def test_initial_stage_entry_recorded(self, session):
        times = session.progress_metrics.stage_start_times
        assert list(times) == [Stage.CONTEXT_DISCOVERY]
        assert times[Stage.CONTEXT_DISCOVERY] == session.progress_metrics.start_time

    def test_ids_are_unique(self):
        ids = {Session.create().session_id for _ in range(50)}
        assert len(ids) == 50

    def test_explicit_id(self):
        assert Session.create("abc").session_id == "abc"


class TestAppendMessage:
    def test_appends_in_order(self, session):
        session.append_message("user", "Hi")
        session.append_message("assistant", "Hello")
        assert [(t.role, t.content) for t in session.conversation_history] == [
            ("user", "Hi"),
            ("assistant", "Hello"),
        ]

    def test_timestamps_never_go_backwards(self, session):
        first = session.append_message("user", "one")
        earlier = first.timestamp - timedelta(seconds=30)
        with patch.object(session_models, "utcnow", return_value=earlier):
            second = session.append_message("assistant", "two")
        assert second.timestamp >= first.timestamp

    def test_rejects_unknown_role(self, session):
        with pytest.raises(ValueError):
            session.append_message("system", "nope")


class TestMergeStageData:
    def test_shallow_merge(self, session):
        session.merge_stage_data(
            Stage.CONTEXT_DISCOVERY,
            {"situationDescription": "Email overload", "stakeholders": ["Staff"]},
        )
        session.merge_stage_data(Stage.CONTEXT_DISCOVERY, {"stakeholders": ["Board"]})
        record = session.stage_data[Stage.CONTEXT_DISCOVERY]
        assert record["situationDescription"] == "Email overload"
        assert record["stakeholders"] == ["Board"]
        assert record["constraints"] == []

    def test_free_form_fields_allowed(self, session):
        session.merge_stage_data(Stage.CONTEXT_DISCOVERY, {"budget": "5k"})
        assert session.stage_data[Stage.CONTEXT_DISCOVERY]["budget"] == "5k"

    def test_completed_flag_cannot_be_merged(self, session):
        session.merge_stage_data(Stage.CONTEXT_DISCOVERY, {"completed": True})
        assert session.stage_data[Stage.CONTEXT_DISCOVERY]["completed"] is False

        session.advance_stage()
        session.merge_stage_data(Stage.CONTEXT_DISCOVERY, {"completed": False})
        assert session.stage_data[Stage.CONTEXT_DISCOVERY]["completed"] is True

    def test_accepts_plain_string_stage(self, session):
        session.merge_stage_data("objective_definition", {"rootProblem": "X"})
        assert session.stage_data[Stage.OBJECTIVE_DEFINITION]["rootProblem"] == "X"


class TestAdvanceStage:
    def test_walks_the_fixed_order(self, session):
        seen = [session.stage]
        while session.advance_stage():
            seen.append(session.stage)
        assert seen == STAGE_ORDER

    def test_marks_left_stage_completed(self, session):
        session.advance_stage()
        assert session.stage_data[Stage.CONTEXT_DISCOVERY]["completed"] is True
        assert session.stage_data[Stage.OBJECTIVE_DEFINITION]["completed"] is False

    def test_records_entry_time_once(self, session):
        session.advance_stage()
        entered = session.progress_metrics.stage_start_times[Stage.OBJECTIVE_DEFINITION]
        assert entered >= session.progress_metrics.start_time

    def test_terminal_is_noop(self, session):
        for _ in STAGE_ORDER:
            session.advance_stage()
        assert session.stage == Stage.COMPLETE
        assert session.is_complete() is True
        before = session.snapshot()

        assert session.advance_stage() is False
        assert session.stage == Stage.COMPLETE
        assert session.snapshot()["stage_data"] == before["stage_data"]
        assert session.stage_data[Stage.COMPLETE]["completed"] is False

    def test_completed_flags_stay_true(self, session):
        completed = set()
        while True:
            for stage in completed:
                assert session.stage_data[stage]["completed"] is True
            current = session.stage
            if not session.advance_stage():
                break
            completed.add(current)
        assert completed == set(STAGE_ORDER[:-1])


class TestOverrideStage:
    def test_forward_jump(self, session):
        session.override_stage(Stage.METHOD_SELECTION)
        assert session.stage == Stage.METHOD_SELECTION
        assert session.stage_data[Stage.CONTEXT_DISCOVERY]["completed"] is True
        # Skipped stages were never left, so they are not completed.
        assert session.stage_data[Stage.OBJECTIVE_DEFINITION]["completed"] is False
        assert Stage.METHOD_SELECTION in session.progress_metrics.stage_start_times

    def test_backward_rejected(self, session):
        session.advance_stage()
        with pytest.raises(InvalidTransition):
            session.override_stage(Stage.CONTEXT_DISCOVERY)
        assert session.stage == Stage.OBJECTIVE_DEFINITION

    def test_same_stage_rejected(self, session):
        with pytest.raises(InvalidTransition):
            session.override_stage(Stage.CONTEXT_DISCOVERY)


class TestArtifacts:
    def test_add_syncs_context_record(self, session):
        artifact = session.add_artifact(Artifact(filename="donors.csv", owner="Ops"))
        context = session.stage_data[Stage.CONTEXT_DISCOVERY]["artifacts"]
        assert context == [
            {"id": artifact.id, "filename": "donors.csv", "owner": "Ops", "sensitivity": "normal"}
        ]

    def test_remove_is_logical(self, session):
        keep = session.add_artifact(Artifact(filename="a.txt"))
        drop = session.add_artifact(Artifact(filename="b.txt"))

        assert session.remove_artifact(drop.id) is True
        assert [a.id for a in session.artifacts] == [keep.id, drop.id]
        assert [a.id for a in session.active_artifacts()] == [keep.id]
        assert [a["id"] for a in session.stage_data[Stage.CONTEXT_DISCOVERY]["artifacts"]] == [keep.id]

    def test_remove_unknown_or_twice(self, session):
        artifact = session.add_artifact(Artifact(filename="a.txt"))
        assert session.remove_artifact("missing") is False
        assert session.remove_artifact(artifact.id) is True
        assert session.remove_artifact(artifact.id) is False


class TestSnapshot:
    def test_snapshot_is_json_ready_copy(self, session):
        session.append_message("user", "Hi")
        snap = session.snapshot()
        assert snap["stage"] == "context_discovery"
        assert "objective_definition" in snap["stage_data"]
        assert isinstance(snap["conversation_history"][0]["timestamp"], str)

        snap["stage_data"]["context_discovery"]["stakeholders"].append("X")
        assert session.stage_data[Stage.CONTEXT_DISCOVERY]["stakeholders"] == []

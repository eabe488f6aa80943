"""Tests for core.compas.objective_validator."""

import pytest

from core.compas.objective_validator import validate_objective_statement


class TestValidateObjectiveStatement:
    @pytest.mark.parametrize(
        "statement",
        [
            "We need a chatbot to answer donor emails",
            "Let's build a volunteer portal",
            "We should use GPT for grant writing",
        ],
    )
    def test_solution_statements(self, statement):
        result = validate_objective_statement(statement)
        assert result.is_solution is True
        assert result.is_valid is False
        assert any("problem rather than a solution" in s for s in result.suggestions)

    @pytest.mark.parametrize(
        "statement",
        [
            "We lose 20 hours every month triaging email",
            "Staff struggle to keep donor records current",
            "We can't respond to volunteers quickly",
        ],
    )
    def test_problem_statements(self, statement):
        result = validate_objective_statement(statement)
        assert result.is_problem is True
        assert result.is_solution is False
        assert result.is_valid is True
        assert result.suggestions == []

    def test_neither(self):
        result = validate_objective_statement("Our office is on the second floor")
        assert result.is_valid is False
        assert result.is_solution is False
        assert "Include specific pain points or challenges." in result.suggestions

    def test_solution_and_problem(self):
        result = validate_objective_statement("We need to build a tool because we waste time")
        assert result.is_solution is True
        assert result.is_problem is True
        assert result.is_valid is False

    def test_empty(self):
        assert validate_objective_statement("").is_valid is False

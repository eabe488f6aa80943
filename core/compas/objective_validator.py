"""Solution-vs-problem check for objective statements.

While the objective is being defined, users often answer with a solution
("We need a chatbot") instead of the problem it would address. This module
classifies a statement with two regex lists and suggests a rephrasing.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List


# Solution-oriented statements that should be rejected
SOLUTION_PATTERNS = [
    re.compile(r"we need (a|an|to)", re.IGNORECASE),
    re.compile(r"implement", re.IGNORECASE),
    re.compile(r"build", re.IGNORECASE),
    re.compile(r"create", re.IGNORECASE),
    re.compile(r"develop", re.IGNORECASE),
    re.compile(r"use (gpt|claude|ai|chatbot)", re.IGNORECASE),
    re.compile(r"deploy", re.IGNORECASE),
    re.compile(r"install", re.IGNORECASE),
]

# Problem-oriented keywords that indicate good problem statements
PROBLEM_PATTERNS = [
    re.compile(r"lose \d+ (hours?|hrs?)", re.IGNORECASE),
    re.compile(r"waste", re.IGNORECASE),
    re.compile(r"struggle", re.IGNORECASE),
    re.compile(r"can't", re.IGNORECASE),
    re.compile(r"unable", re.IGNORECASE),
    re.compile(r"difficult", re.IGNORECASE),
    re.compile(r"challenge", re.IGNORECASE),
    re.compile(r"issue", re.IGNORECASE),
    re.compile(r"problem", re.IGNORECASE),
    re.compile(r"lacking", re.IGNORECASE),
    re.compile(r"missing", re.IGNORECASE),
    re.compile(r"inefficient", re.IGNORECASE),
]


@dataclass
class ObjectiveValidation:
    is_valid: bool
    is_solution: bool
    is_problem: bool
    suggestions: List[str] = field(default_factory=list)


def validate_objective_statement(statement: str) -> ObjectiveValidation:
    """Classify `statement` as a solution and/or a problem statement.

    A statement is valid when it reads as a problem and not as a solution.
    """
    text = statement or ""
    is_solution = any(p.search(text) for p in SOLUTION_PATTERNS)
    is_problem = any(p.search(text) for p in PROBLEM_PATTERNS)

    return ObjectiveValidation(
        is_valid=not is_solution and is_problem,
        is_solution=is_solution,
        is_problem=is_problem,
        suggestions=_suggestions(is_solution, is_problem),
    )


def _suggestions(is_solution: bool, is_problem: bool) -> List[str]:
    suggestions: List[str] = []

    if is_solution:
        suggestions.append("Try rephrasing as a problem rather than a solution.")
        suggestions.append("Focus on what challenge or pain point this would address.")
        suggestions.append(
            "Example: Instead of 'We need a chatbot', try "
            "'We spend 20 hours/week answering repetitive questions'"
        )

    if not is_problem:
        suggestions.append("Include specific pain points or challenges.")
        suggestions.append(
            "Quantify the impact if possible (time lost, resources wasted, etc.)"
        )
        suggestions.append("Use problem-oriented language (struggle, can't, waste, etc.)")

    return suggestions

#!/usr/bin/env python3
"""
COMPAS Navigator CLI

Console front-end for the coaching workflow.

Commands:

1) criteria
   - Print the stage order with required fields and progress triggers.

2) chat
   - Run an interactive coaching session in the terminal against the
     configured OpenAI models. Inside the session:
       /report        print the current report
       /stage         print the current stage
       /export PATH   write the Markdown report to PATH
       /quit          leave the session

The HTTP server is started separately, e.g.:

    uvicorn runtime.api.server:app --reload
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Callable, Optional

# Ensure project root is on sys.path when running as a script
ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from configs.settings import PROGRESSION_POLICIES, settings
from core.compas.stages import STAGE_CRITERIA, STAGE_ORDER
from exceptions.exceptions import CollaboratorError, SolutionStatementRejected


# ---------------------------------------------------------------------------
# criteria
# ---------------------------------------------------------------------------


def cmd_criteria(out: Callable[[str], None] = print) -> None:
    """Print the stage table in order."""
    for number, stage in enumerate(STAGE_ORDER, start=1):
        criteria = STAGE_CRITERIA[stage]
        out(f"{number}. {criteria.title} [{stage.value}] ({criteria.time_estimate})")
        out(f"   required: {', '.join(criteria.required)}")
        if criteria.minimum_count is not None:
            out(f"   minimum:  {criteria.minimum_count.describe()}")
        out(f"   trigger:  {criteria.progress_trigger}")
        nxt = criteria.next_stage.value if criteria.next_stage else "-"
        out(f"   next:     {nxt}")


# ---------------------------------------------------------------------------
# chat
# ---------------------------------------------------------------------------


def build_agent(policy: str):
    """Wire a ConversationAgent against the configured OpenAI models."""
    # Lazy imports so `criteria` works without the OpenAI stack configured.
    from core.api.openai_client import SamplingParams
    from core.compas.analysis import OpenAIAnalysisBackend
    from core.compas.completion import OpenAICompletionBackend
    from core.compas.progression import StageProgressionEngine, build_progression_policy
    from runtime.agents.conversation_agent import ConversationAgent
    from runtime.store.log_store import ConsoleLogStore
    from runtime.store.session_store import SessionStore

    analysis_backend = OpenAIAnalysisBackend(
        model=settings.analysis_model,
        temperature=settings.analysis_temperature,
        max_tokens=settings.max_tokens,
    )
    return ConversationAgent(
        session_store=SessionStore(),
        completion_backend=OpenAICompletionBackend(
            SamplingParams(
                model=settings.openai_model,
                temperature=settings.chat_temperature,
                max_tokens=settings.max_tokens,
            )
        ),
        progression_engine=StageProgressionEngine(
            build_progression_policy(policy, analysis_backend)
        ),
        log_store=ConsoleLogStore(),
        completion_retries=settings.completion_retries,
    )


def run_chat(
    agent,
    read: Callable[[str], str] = input,
    out: Callable[[str], None] = print,
    export_path: Optional[str] = None,
) -> str:
    """Drive one session from the console until /quit or EOF.

    Returns the session_id. If export_path is given, the final report is
    written there on exit.
    """
    session = agent.start_session()
    session_id = session.session_id
    out(f"[COMPAS] Session {session_id} started. Stage: {session.stage.value}")
    out("[COMPAS] Describe the challenge you are facing. (/quit to leave)")

    while True:
        try:
            line = read("you> ").strip()
        except EOFError:
            break

        if not line:
            continue
        if line == "/quit":
            break
        if line == "/report":
            out(agent.get_report(session_id))
            continue
        if line == "/stage":
            out(f"[COMPAS] Stage: {agent.get_snapshot(session_id)['stage']}")
            continue
        if line.startswith("/export"):
            target = line[len("/export"):].strip() or export_path
            if not target:
                out("[COMPAS] Usage: /export PATH")
                continue
            _write_report(agent, session_id, target)
            out(f"[COMPAS] ✓ Report written → {target}")
            continue

        try:
            response = agent.handle_user_message(session_id, line)
        except SolutionStatementRejected as e:
            out("[COMPAS] That sounds like a solution rather than a problem.")
            for suggestion in e.suggestions:
                out(f"[COMPAS]   - {suggestion}")
            continue
        except CollaboratorError as e:
            out(f"[COMPAS] The coaching model is unavailable ({e}). Please try again.")
            continue

        out(f"coach> {response.message}")
        if response.advanced:
            out(f"[COMPAS] Stage: {response.previous_stage} → {response.stage}")
        if response.analysis_failed:
            out("[COMPAS] (stage analysis unavailable for this turn)")

    if export_path:
        _write_report(agent, session_id, export_path)
        out(f"[COMPAS] ✓ Report written → {export_path}")
    return session_id


def _write_report(agent, session_id: str, path: str) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(agent.get_report(session_id), encoding="utf-8")


def cmd_chat(policy: str, export_path: Optional[str]) -> None:
    agent = build_agent(policy)
    run_chat(agent, export_path=export_path)


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="COMPAS Navigator CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # criteria
    subparsers.add_parser("criteria", help="Print the COMPAS stages and their criteria")

    # chat
    p_chat = subparsers.add_parser("chat", help="Run an interactive coaching session")
    p_chat.add_argument(
        "--policy",
        choices=PROGRESSION_POLICIES,
        default=None,
        help="Stage progression policy (default: COMPAS_PROGRESSION_POLICY or 'assisted')",
    )
    p_chat.add_argument(
        "--export",
        dest="export_path",
        default=None,
        help="Write the Markdown report to this path when the session ends",
    )

    return parser


def main(argv: Optional[list] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    command: str = args.command

    if command == "criteria":
        cmd_criteria()
    elif command == "chat":
        cmd_chat(
            policy=args.policy or settings.progression_policy,
            export_path=args.export_path,
        )
    else:
        parser.error(f"Unknown command: {command}")


if __name__ == "__main__":
    main()

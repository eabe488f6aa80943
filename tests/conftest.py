"""Shared fixtures for the COMPAS Navigator test suite."""

import threading

import pytest

from core.compas.analysis import StageAnalysis
from core.compas.progression import (
    AssistedProgressionPolicy,
    KeywordProgressionPolicy,
    StageProgressionEngine,
)
from core.compas.prompt_builder import PromptBuilder
from runtime.agents.conversation_agent import ConversationAgent
from runtime.models.session_models import Session
from runtime.store.session_store import SessionStore


class FakeCompletionBackend:
    """Completion backend returning canned replies (or raising them).

    `replies` items are returned in order; an Exception instance is raised
    instead of returned. The last item repeats once the list runs out.
    """

    def __init__(self, replies=None):
        self.replies = list(replies or ["Tell me more about your situation."])
        self.calls = []
        self._lock = threading.Lock()

    def complete(self, system_prompt, turns, sampling=None):
        with self._lock:
            self.calls.append({"system_prompt": system_prompt, "turns": list(turns)})
            reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeAnalysisBackend:
    """Analysis backend returning canned StageAnalysis results (or raising)."""

    def __init__(self, results=None):
        self.results = list(results or [{"shouldProgress": False}])
        self.contexts = []

    def analyze(self, context):
        self.contexts.append(context)
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        if isinstance(result, dict):
            return StageAnalysis.model_validate(result)
        return result


@pytest.fixture
def session():
    """Fresh session at context_discovery."""
    return Session.create()


@pytest.fixture
def session_store():
    return SessionStore()


@pytest.fixture
def completion_backend():
    return FakeCompletionBackend()


@pytest.fixture
def analysis_backend():
    return FakeAnalysisBackend()


@pytest.fixture
def keyword_engine():
    return StageProgressionEngine(KeywordProgressionPolicy())


@pytest.fixture
def assisted_engine(analysis_backend):
    return StageProgressionEngine(AssistedProgressionPolicy(analysis_backend))


@pytest.fixture
def make_agent(session_store):
    """Factory: ConversationAgent wired with fakes.

    make_agent(replies=[...], analysis=[...]) uses the assisted policy when
    `analysis` is given, the keyword policy otherwise.
    """

    def _make(replies=None, analysis=None, log_store=None, completion_retries=0):
        completion = FakeCompletionBackend(replies)
        if analysis is not None:
            engine = StageProgressionEngine(
                AssistedProgressionPolicy(FakeAnalysisBackend(analysis))
            )
        else:
            engine = StageProgressionEngine(KeywordProgressionPolicy())
        agent = ConversationAgent(
            session_store=session_store,
            completion_backend=completion,
            progression_engine=engine,
            prompt_builder=PromptBuilder(max_response_words=300),
            log_store=log_store,
            completion_retries=completion_retries,
            retry_wait=0,
        )
        return agent, completion

    return _make

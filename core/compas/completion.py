"""Completion collaborator: produces the coach's reply for a prompt."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Protocol

from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from core.api import openai_client
from core.api.openai_client import SamplingParams
from exceptions.exceptions import CollaboratorUnavailable


logger = logging.getLogger(__name__)


class CompletionBackend(Protocol):
    """
    complete(system_prompt, turns, sampling) -> assistant text

    Raises CollaboratorUnavailable / CollaboratorTimeout when the provider
    fails and CollaboratorMalformedOutput when it answers with nothing
    usable.
    """

    def complete(
        self,
        system_prompt: str,
        turns: List[Dict[str, str]],
        sampling: Optional[SamplingParams] = None,
    ) -> str:
        ...


class OpenAICompletionBackend:
    """CompletionBackend backed by the OpenAI Chat Completions API."""

    def __init__(self, sampling: Optional[SamplingParams] = None) -> None:
        self.sampling = sampling or SamplingParams()

    def complete(self, system_prompt, turns, sampling=None) -> str:
        return openai_client.send_chat_to_gpt(
            system_prompt,
            turns,
            sampling or self.sampling,
        )


def complete_with_retry(
    backend: CompletionBackend,
    system_prompt: str,
    turns: List[Dict[str, str]],
    sampling: Optional[SamplingParams] = None,
    retries: int = 0,
    wait_multiplier: float = 1.0,
) -> str:
    """Call backend.complete with exponential backoff on provider failures.

    Only CollaboratorUnavailable (timeouts included) is retried; malformed
    output is raised immediately. With retries=0 this is a single call.
    """

    @retry(
        stop=stop_after_attempt(retries + 1),  # +1 because first attempt counts
        wait=wait_exponential(multiplier=wait_multiplier, min=0, max=16),
        retry=retry_if_exception_type(CollaboratorUnavailable),
        reraise=True,
        before_sleep=lambda state: logger.warning(
            "[AGENT] Completion failed: %r. Retrying in %.0fs (attempt %d/%d)",
            state.outcome.exception(),
            state.next_action.sleep,
            state.attempt_number,
            retries + 1,
        ),
    )
    def _complete():
        return backend.complete(system_prompt, turns, sampling)

    return _complete()

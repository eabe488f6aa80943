"""
core.api.openai_client

Thin wrapper around the OpenAI Chat Completions API for COMPAS Navigator.

Used by:
  - core/compas/analysis.py    (stage analysis, JSON output)
  - runtime/api/server.py      (coaching replies via OpenAICompletionBackend)
  - cli/main.py

All OpenAI SDK errors are translated into the collaborator exceptions in
exceptions/exceptions.py so that callers never depend on the SDK.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Type, Union

from openai import APITimeoutError, OpenAI, OpenAIError
from pydantic import BaseModel, ValidationError

from configs.settings import settings
from exceptions.exceptions import (
    CollaboratorMalformedOutput,
    CollaboratorTimeout,
    CollaboratorUnavailable,
)


logger = logging.getLogger(__name__)


# -------------------------------------------------------------------
# Client + config
# -------------------------------------------------------------------

_client: Optional[OpenAI] = None


def get_client() -> OpenAI:
    """Return the shared client, creating it on first use.

    Creation is deferred so that importing this module does not require
    OPENAI_API_KEY (keyword-only setups and tests never call OpenAI).
    """
    global _client
    if _client is None:
        _client = OpenAI(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            timeout=settings.request_timeout,
        )
    return _client


@dataclass
class SamplingParams:
    """Sampling parameters for a single completion request."""

    model: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 1000


# -------------------------------------------------------------------
# Internal helpers
# -------------------------------------------------------------------


def _extract_json_from_text(text: str) -> str:
    """
    Normalize model text output into a raw JSON string.

    Handles common patterns like Markdown ```json fenced blocks and
    extra prose around the JSON object by extracting the first JSON-like
    block from the text.
    """
    text = text.strip()

    # Strip Markdown code fences if present.
    if text.startswith("```"):
        lines = text.splitlines()
        if lines and lines[0].startswith("```"):
            lines = lines[1:]
        if lines and lines[-1].startswith("```"):
            lines = lines[:-1]
        text = "\n".join(lines).strip()

    # Best-effort extraction of the outermost {...} block.
    if "{" in text and "}" in text:
        start = text.find("{")
        end = text.rfind("}")
        if start != -1 and end != -1 and end > start:
            return text[start : end + 1].strip()

    return text


def parse_structured_output(text: str, schema: Type[BaseModel]) -> BaseModel:
    """Parse model text into `schema`.

    Raises CollaboratorMalformedOutput when the text is not a JSON object
    or does not satisfy the schema.
    """
    cleaned_text = _extract_json_from_text(text or "")
    try:
        data = json.loads(cleaned_text)
    except json.JSONDecodeError as e:
        raise CollaboratorMalformedOutput(
            f"Failed to parse JSON from model output: {e}", raw_output=text
        )

    if not isinstance(data, dict):
        raise CollaboratorMalformedOutput(
            f"Expected a JSON object, got {type(data).__name__}", raw_output=text
        )

    try:
        return schema.model_validate(data)
    except ValidationError as e:
        raise CollaboratorMalformedOutput(
            f"Model output does not match {schema.__name__}: {e}", raw_output=text
        )


def _create_completion(messages: List[Dict[str, str]], sampling: SamplingParams) -> str:
    model_name = sampling.model or settings.openai_model
    try:
        completion = get_client().chat.completions.create(
            model=model_name,
            messages=messages,
            temperature=sampling.temperature,
            max_tokens=sampling.max_tokens,
        )
    except APITimeoutError as e:
        logger.warning("[OPENAI] Request to model=%s timed out", model_name)
        raise CollaboratorTimeout(f"OpenAI request timed out: {e}") from e
    except OpenAIError as e:
        logger.warning("[OPENAI] Request to model=%s failed: %s", model_name, e)
        raise CollaboratorUnavailable(f"OpenAI request failed: {e}") from e

    if not completion.choices:
        raise CollaboratorMalformedOutput("Empty response from OpenAI API.")

    return completion.choices[0].message.content or ""


# -------------------------------------------------------------------
# Public functions
# -------------------------------------------------------------------


def send_chat_to_gpt(
    system_prompt: str,
    turns: List[Dict[str, str]],
    sampling: Optional[SamplingParams] = None,
) -> str:
    """
    Send a system prompt plus prior conversation turns and return the
    assistant text.

    Parameters
    ----------
    system_prompt : str
        Full system instruction.
    turns : list of {"role", "content"}
        Ordered conversation so far (user / assistant).
    sampling : SamplingParams, optional
        Model name, temperature and max_tokens.

    Raises
    ------
    CollaboratorUnavailable / CollaboratorTimeout
        If the API call fails.
    CollaboratorMalformedOutput
        If the response has no choices or no text.
    """
    sampling = sampling or SamplingParams()
    messages = [{"role": "system", "content": system_prompt}]
    messages.extend({"role": t["role"], "content": t["content"]} for t in turns)

    text = _create_completion(messages, sampling)
    if not text.strip():
        raise CollaboratorMalformedOutput("OpenAI returned an empty message.")
    return text


def send_request_to_gpt(
    prompt: str,
    *,
    structured_output: Union[bool, Type[BaseModel]] = False,
    model: Optional[str] = None,
    temperature: float = 0.0,
    max_tokens: int = 1000,
) -> Any:
    """
    Send a single-message prompt to the OpenAI API and return the response.

    Parameters
    ----------
    prompt : str
        The user prompt (full instruction text).
    structured_output : bool | Type[BaseModel]
        - False (default): return plain text string.
        - True: expect a JSON object and return raw text (caller parses).
        - Pydantic BaseModel subclass: parse and validate the answer into
          an instance of that model.
    model : str, optional
        Override the default model name.

    Raises
    ------
    CollaboratorUnavailable / CollaboratorTimeout
        If the API call fails.
    CollaboratorMalformedOutput
        If response is missing, or does not match the requested schema.
    """
    sampling = SamplingParams(model=model, temperature=temperature, max_tokens=max_tokens)
    text = _create_completion([{"role": "user", "content": prompt}], sampling)

    # Caller passed a Pydantic model type for structured output
    if isinstance(structured_output, type) and issubclass(structured_output, BaseModel):
        return parse_structured_output(text, structured_output)

    return text

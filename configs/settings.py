from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


load_dotenv()


PROGRESSION_POLICIES = ("keyword", "assisted")


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}.")


def _get_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}.")


class Settings:
    """
    Central configuration for COMPAS Navigator.

    Values are read from environment variables (with sensible defaults)
    and then exposed via typed properties. Numeric values are validated
    lazily, so a bad value only fails the code path that reads it.
    """

    def __init__(self) -> None:
        # OpenAI / model configuration
        self._openai_api_key = os.getenv("OPENAI_API_KEY")
        self._openai_base_url = os.getenv("OPENAI_BASE_URL") or None
        self._openai_model = os.getenv("COMPAS_OPENAI_MODEL", "gpt-4")

        # Analysis model (defaults to the chat model)
        self._analysis_model = os.getenv(
            "COMPAS_ANALYSIS_MODEL",
            self._openai_model,
        )

        self._progression_policy = os.getenv(
            "COMPAS_PROGRESSION_POLICY", "assisted"
        ).strip().lower()

        # Runtime data (event logs, exports)
        self._runtime_data_dir = Path(
            os.getenv("COMPAS_RUNTIME_DATA_DIR", "runtime/data")
        )

        self._log_level = os.getenv("COMPAS_LOG_LEVEL", "INFO").upper()

    # ------------------------------------------------------------------
    # OpenAI / model settings
    # ------------------------------------------------------------------

    @property
    def openai_api_key(self) -> str:
        if not self._openai_api_key:
            raise RuntimeError(
                "OPENAI_API_KEY is not set. Please export it in your environment "
                "or define it in a .env file."
            )
        return self._openai_api_key

    @property
    def openai_base_url(self) -> Optional[str]:
        return self._openai_base_url

    @property
    def openai_model(self) -> str:
        return self._openai_model

    @property
    def analysis_model(self) -> str:
        return self._analysis_model

    @property
    def chat_temperature(self) -> float:
        return _get_float("COMPAS_CHAT_TEMPERATURE", 0.7)

    @property
    def analysis_temperature(self) -> float:
        return _get_float("COMPAS_ANALYSIS_TEMPERATURE", 0.3)

    @property
    def max_tokens(self) -> int:
        return _get_int("COMPAS_MAX_TOKENS", 1000)

    @property
    def request_timeout(self) -> float:
        return _get_float("COMPAS_REQUEST_TIMEOUT", 60.0)

    @property
    def completion_retries(self) -> int:
        return max(0, _get_int("COMPAS_COMPLETION_RETRIES", 0))

    # ------------------------------------------------------------------
    # Coaching behavior
    # ------------------------------------------------------------------

    @property
    def max_response_words(self) -> int:
        return _get_int("COMPAS_MAX_RESPONSE_WORDS", 300)

    @property
    def progression_policy(self) -> str:
        if self._progression_policy not in PROGRESSION_POLICIES:
            raise RuntimeError(
                "COMPAS_PROGRESSION_POLICY must be one of "
                f"{', '.join(PROGRESSION_POLICIES)}; got {self._progression_policy!r}."
            )
        return self._progression_policy

    # ------------------------------------------------------------------
    # Session store
    # ------------------------------------------------------------------

    @property
    def session_max_idle_seconds(self) -> int:
        return _get_int("COMPAS_SESSION_MAX_IDLE_SECONDS", 24 * 60 * 60)

    @property
    def max_sessions(self) -> int:
        return _get_int("COMPAS_MAX_SESSIONS", 1000)

    # ------------------------------------------------------------------
    # Paths / logging
    # ------------------------------------------------------------------

    @property
    def runtime_data_dir(self) -> Path:
        return self._runtime_data_dir

    @property
    def log_level(self) -> str:
        return self._log_level


settings = Settings()

"""
Configuration for the capture and synthesis loop.
Centralizes tunable limits so they can be adjusted without touching control flow.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# ---------------------------------------------------------------------
# Capture window
# ---------------------------------------------------------------------

DWELL_SECONDS: float = 10.0
REPLAY_URL_TEMPLATE: str = "https://browserbase.com/sessions/{session_id}"
BODY_DRAIN_SECONDS: float = 5.0

# ---------------------------------------------------------------------
# Payload normalization limits
# ---------------------------------------------------------------------

NORMALIZE_MAX_CHARS: int = 100_000
MAX_LINE_LENGTH: int = 120
ATTRIBUTE_WRAP_LENGTH: int = 100
DATA_URI_MAX_CHARS: int = 200
INDENT: str = "  "

# ---------------------------------------------------------------------
# Synthesis loop
# ---------------------------------------------------------------------

MAX_RETRIES: int = 5
CANDIDATE_PATH: str = "scripts/get_data.py"
CANDIDATE_FUNCTION: str = "get_data"
HARNESS_PATH: str = "tests/test_schema.py"
SCHEMA_PATH: str = "lib/schema.txt"
LOG_FILE_TEMPLATE: str = "logs/log-{index}.json"
TEST_TIMEOUT_SECONDS: float = 60.0

# ---------------------------------------------------------------------
# LLM defaults (overridable through the environment)
# ---------------------------------------------------------------------

DEFAULT_MODEL_NAME: str = "gpt-4o"
DEFAULT_MAX_TOKENS: int = 8192
DEFAULT_TEMPERATURE: float = 0.0


@dataclass(frozen=True)
class CapturePolicy:
    """Bounds for a single capture session."""

    dwell_seconds: float = DWELL_SECONDS
    dump_dir: Optional[Path] = None


@dataclass(frozen=True)
class LoopPolicy:
    """Retry budget and file layout used by the synthesis loop."""

    max_retries: int = MAX_RETRIES
    candidate_path: str = CANDIDATE_PATH


def capture_policy_from_env() -> CapturePolicy:
    dump_dir = (os.getenv("CAPTURE_DUMP_DIR") or "").strip()
    return CapturePolicy(
        dwell_seconds=float(os.getenv("CAPTURE_DWELL_SECONDS", DWELL_SECONDS)),
        dump_dir=Path(dump_dir) if dump_dir else None,
    )


def executor_timeout_from_env() -> float:
    return float(os.getenv("TEST_TIMEOUT_SECONDS", TEST_TIMEOUT_SECONDS))


def model_name_from_env(var: str = "AI_MODEL_NAME") -> str:
    return os.getenv(var, os.getenv("AI_MODEL_NAME", DEFAULT_MODEL_NAME))


# ---------------------------------------------------------------------
# Public exports
# ---------------------------------------------------------------------

__all__ = [
    "DWELL_SECONDS",
    "REPLAY_URL_TEMPLATE",
    "BODY_DRAIN_SECONDS",
    "NORMALIZE_MAX_CHARS",
    "MAX_LINE_LENGTH",
    "ATTRIBUTE_WRAP_LENGTH",
    "DATA_URI_MAX_CHARS",
    "INDENT",
    "MAX_RETRIES",
    "CANDIDATE_PATH",
    "CANDIDATE_FUNCTION",
    "HARNESS_PATH",
    "SCHEMA_PATH",
    "LOG_FILE_TEMPLATE",
    "TEST_TIMEOUT_SECONDS",
    "DEFAULT_MODEL_NAME",
    "DEFAULT_MAX_TOKENS",
    "DEFAULT_TEMPERATURE",
    "CapturePolicy",
    "LoopPolicy",
    "capture_policy_from_env",
    "executor_timeout_from_env",
    "model_name_from_env",
]

"""
Application Settings
====================

All environment-loaded configuration in one place, organized by domain.
This is the single source of truth for runtime configuration.

Usage:
    from apps.handoffdesk.backend.config import CREDENTIAL_ENDPOINT_URL
    from apps.handoffdesk.backend.config.settings import GREETING_TEXT
"""

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

if os.path.isfile(".env"):
    load_dotenv(override=False)


# ==============================================================================
# HELPER FUNCTIONS
# ==============================================================================

def _env_bool(key: str, default: bool = False) -> bool:
    """Parse boolean from environment variable."""
    return os.getenv(key, str(default)).lower() in ("true", "1", "yes", "on")


def _env_float(key: str, default: float) -> float:
    """Parse float from environment variable."""
    return float(os.getenv(key, str(default)))


def _env_list(key: str, default: str = "", sep: str = ",") -> List[str]:
    """Parse list from comma-separated environment variable."""
    raw = os.getenv(key, default)
    return [item.strip() for item in raw.split(sep) if item.strip()]


# ==============================================================================
# CREDENTIAL ENDPOINT
# ==============================================================================

CREDENTIAL_ENDPOINT_URL: str = os.getenv(
    "CREDENTIAL_ENDPOINT_URL", "http://localhost:3000/api/session"
)
CREDENTIAL_TIMEOUT_SECONDS: float = _env_float("CREDENTIAL_TIMEOUT_SECONDS", 10.0)


# ==============================================================================
# TRANSPORT
# ==============================================================================

TRANSPORT_CONNECT_TIMEOUT_SECONDS: float = _env_float("TRANSPORT_CONNECT_TIMEOUT_SECONDS", 15.0)


# ==============================================================================
# SCENARIOS & SESSION
# ==============================================================================

SCENARIOS_DIR: Path = Path(
    os.getenv(
        "SCENARIOS_DIR",
        str(Path(__file__).resolve().parent.parent / "registries" / "scenariostore"),
    )
)
DEFAULT_SCENARIO_KEY: str = os.getenv("DEFAULT_SCENARIO_KEY", "chatSupervisor")

# Text of the synthetic user turn that prompts the entry persona to speak first
GREETING_TEXT: str = os.getenv("GREETING_TEXT", "hola")


# ==============================================================================
# PREFERENCES
# ==============================================================================

PREFERENCES_FILE: str = os.getenv("PREFERENCES_FILE", "")
DEFAULT_PUSH_TO_TALK: bool = _env_bool("DEFAULT_PUSH_TO_TALK", False)
DEFAULT_AUDIO_PLAYBACK: bool = _env_bool("DEFAULT_AUDIO_PLAYBACK", True)


# ==============================================================================
# GUARDRAILS
# ==============================================================================

# "blocklist" (local regex rules) or "openai" (moderation endpoint)
GUARDRAIL_CLASSIFIER: str = os.getenv("GUARDRAIL_CLASSIFIER", "blocklist").lower()
GUARDRAIL_FALLBACK_MESSAGE: str = os.getenv(
    "GUARDRAIL_FALLBACK_MESSAGE",
    "Sorry, I can't help with that. Is there anything else I can do for you?",
)
GUARDRAIL_COMPETITORS: List[str] = _env_list("GUARDRAIL_COMPETITORS")


# ==============================================================================
# MONITORING
# ==============================================================================

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
ENABLE_TRACING: bool = _env_bool("ENABLE_TRACING", False)


# ==============================================================================
# VALIDATION
# ==============================================================================

def validate_settings() -> dict:
    """
    Validate current settings and return validation results.

    Returns:
        Dict with 'valid' (bool), 'issues' (list), 'warnings' (list)
    """
    issues = []
    warnings = []

    if not CREDENTIAL_ENDPOINT_URL:
        issues.append("CREDENTIAL_ENDPOINT_URL is empty")

    if CREDENTIAL_TIMEOUT_SECONDS <= 0:
        issues.append("CREDENTIAL_TIMEOUT_SECONDS must be positive")
    if TRANSPORT_CONNECT_TIMEOUT_SECONDS <= 0:
        issues.append("TRANSPORT_CONNECT_TIMEOUT_SECONDS must be positive")

    if GUARDRAIL_CLASSIFIER not in ("blocklist", "openai"):
        issues.append(f"GUARDRAIL_CLASSIFIER '{GUARDRAIL_CLASSIFIER}' is not supported")

    if not SCENARIOS_DIR.is_dir():
        warnings.append(f"SCENARIOS_DIR ({SCENARIOS_DIR}) does not exist")

    if not GREETING_TEXT.strip():
        warnings.append("GREETING_TEXT is empty; fresh connects will send a blank user turn")

    return {
        "valid": len(issues) == 0,
        "issues": issues,
        "warnings": warnings,
    }

"""
Configuration Package
====================

Usage:
    from apps.handoffdesk.backend.config import CREDENTIAL_ENDPOINT_URL, validate_settings
"""

from .settings import (
    CREDENTIAL_ENDPOINT_URL,
    CREDENTIAL_TIMEOUT_SECONDS,
    DEFAULT_AUDIO_PLAYBACK,
    DEFAULT_PUSH_TO_TALK,
    DEFAULT_SCENARIO_KEY,
    ENABLE_TRACING,
    GREETING_TEXT,
    GUARDRAIL_CLASSIFIER,
    GUARDRAIL_COMPETITORS,
    GUARDRAIL_FALLBACK_MESSAGE,
    LOG_LEVEL,
    PREFERENCES_FILE,
    SCENARIOS_DIR,
    TRANSPORT_CONNECT_TIMEOUT_SECONDS,
    validate_settings,
)

__all__ = [
    "CREDENTIAL_ENDPOINT_URL",
    "CREDENTIAL_TIMEOUT_SECONDS",
    "DEFAULT_AUDIO_PLAYBACK",
    "DEFAULT_PUSH_TO_TALK",
    "DEFAULT_SCENARIO_KEY",
    "ENABLE_TRACING",
    "GREETING_TEXT",
    "GUARDRAIL_CLASSIFIER",
    "GUARDRAIL_COMPETITORS",
    "GUARDRAIL_FALLBACK_MESSAGE",
    "LOG_LEVEL",
    "PREFERENCES_FILE",
    "SCENARIOS_DIR",
    "TRANSPORT_CONNECT_TIMEOUT_SECONDS",
    "validate_settings",
]

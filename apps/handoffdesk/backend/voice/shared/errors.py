"""
Session Lifecycle Errors
========================

Exception hierarchy for the connection lifecycle. Every class carries a
``classification`` string; the connection manager turns it into the
``error.<classification>`` event recorded in the correlation log.

Collaborators raise these; the manager catches them at the connect boundary
and reports a single failed ``ConnectResult``.
"""

from __future__ import annotations

from typing import Any

from apps.handoffdesk.backend.registries.agentstore.base import ScenarioValidationError


class SessionLifecycleError(Exception):
    """Base class for failures surfaced by the connection lifecycle."""

    classification = "session-lifecycle-error"

    @property
    def event_name(self) -> str:
        """Correlation log event name, e.g. ``error.credential_server_error``."""
        return "error." + self.classification.replace("-", "_")

    def to_dict(self) -> dict[str, Any]:
        return {"classification": self.classification, "message": str(self)}


# ═══════════════════════════════════════════════════════════════════════════════
# CREDENTIAL ERRORS
# ═══════════════════════════════════════════════════════════════════════════════


class CredentialNetworkError(SessionLifecycleError):
    """Credential endpoint unreachable, timed out or returned unparseable data."""

    classification = "credential-network-error"


class CredentialServerError(SessionLifecycleError):
    """Credential endpoint answered with a non-success status."""

    classification = "credential-server-error"

    def __init__(self, status_code: int, error: str | None = None, details: Any = None):
        self.status_code = status_code
        self.error = error
        self.details = details
        super().__init__(f"Credential endpoint returned {status_code}: {error or 'unknown error'}")

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(status_code=self.status_code, error=self.error, details=self.details)
        return data


class CredentialMissingError(SessionLifecycleError):
    """Success response that carried no credential value."""

    classification = "credential-missing-in-response"


# ═══════════════════════════════════════════════════════════════════════════════
# TRANSPORT & SELECTION ERRORS
# ═══════════════════════════════════════════════════════════════════════════════


class TransportConnectError(SessionLifecycleError):
    """The realtime transport failed (or timed out) while opening a session."""

    classification = "transport-connect-error"

    def __init__(self, cause: BaseException | str):
        self.cause = cause
        super().__init__(f"Transport connect failed: {cause}")


class InvalidScenarioSelection(SessionLifecycleError, LookupError):
    """Requested scenario key is not registered."""

    classification = "invalid-scenario-selection"

    def __init__(self, key: str | None):
        self.key = key
        super().__init__(f"Unknown scenario: {key!r}")


class InvalidPersonaSelection(SessionLifecycleError):
    """Requested persona is not in the roster; recovered by falling back to roster[0]."""

    classification = "invalid-persona-selection"

    def __init__(self, persona_name: str | None, fallback_name: str | None = None):
        self.persona_name = persona_name
        self.fallback_name = fallback_name
        super().__init__(f"Unknown persona {persona_name!r}; using {fallback_name!r}")


class EmptyRosterError(SessionLifecycleError):
    """Scenario has no personas to start a session with."""

    classification = "empty-roster"


class SessionSetupError(SessionLifecycleError):
    """Building the guardrail or session defaults failed before the transport was engaged."""

    classification = "session-setup-error"


__all__ = [
    "SessionLifecycleError",
    "CredentialNetworkError",
    "CredentialServerError",
    "CredentialMissingError",
    "TransportConnectError",
    "InvalidScenarioSelection",
    "InvalidPersonaSelection",
    "EmptyRosterError",
    "SessionSetupError",
    "ScenarioValidationError",
]

"""
Voice Shared Modules
====================

Session data classes, the error taxonomy and the per-session collaborators
used by the connection manager.

Contents:
    - ConnectionStatus / ConnectionSession / ConnectResult: session state
    - SessionLifecycleError and subclasses: classified connect failures
    - HandoffCoordinator: roster preparation and active-persona tracking
    - SessionConfigurator: turn detection and the one-time greeting

Usage:
    from apps.handoffdesk.backend.voice.shared import (
        ConnectionStatus,
        HandoffCoordinator,
        SessionConfigurator,
    )
"""

# Session data classes
from .base import (
    ConnectionSession,
    ConnectionStatus,
    ConnectResult,
)

# Error taxonomy
from .errors import (
    CredentialMissingError,
    CredentialNetworkError,
    CredentialServerError,
    EmptyRosterError,
    InvalidPersonaSelection,
    InvalidScenarioSelection,
    SessionLifecycleError,
    SessionSetupError,
    TransportConnectError,
)

# Handoff coordination
from .handoff_service import (
    HandoffCoordinator,
    RosterPreparation,
)

# Session configuration
from .session_configurator import SessionConfigurator

__all__ = [
    # Session data classes
    "ConnectionSession",
    "ConnectionStatus",
    "ConnectResult",
    # Errors
    "SessionLifecycleError",
    "CredentialNetworkError",
    "CredentialServerError",
    "CredentialMissingError",
    "TransportConnectError",
    "InvalidScenarioSelection",
    "InvalidPersonaSelection",
    "EmptyRosterError",
    "SessionSetupError",
    # Handoff coordination
    "HandoffCoordinator",
    "RosterPreparation",
    # Session configuration
    "SessionConfigurator",
]

"""Exception hierarchy for the bridge.

Transport failures toward the terminal raise ``TransportError`` and are
logged per event by the orchestrator. Only registration and credential
failures stop the process.
"""
from __future__ import annotations


class BridgeError(Exception):
    """Base exception for all bridge errors."""


class TransportError(BridgeError):
    """A request to the terminal or the dashboard failed."""
    def __init__(self, service: str, operation: str, reason: str):
        self.service = service
        self.operation = operation
        self.reason = reason
        super().__init__(f"{service} {operation} failed: {reason}")


class RegistrationError(BridgeError):
    """The dashboard refused to register the agent instance."""
    def __init__(self, agent_instance_id: str, reason: str):
        self.agent_instance_id = agent_instance_id
        self.reason = reason
        super().__init__(
            f"Failed to register agent instance {agent_instance_id}: {reason}"
        )


class ConfigError(BridgeError):
    """Configuration file could not be read or has invalid values."""
    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid config {path}: {reason}")


class CredentialsError(BridgeError):
    """No API key available from the environment or credentials file."""
    def __init__(self, credentials_path: str):
        self.credentials_path = credentials_path
        super().__init__(
            "Vicoa API key not found. Set VICOA_API_KEY or run 'vicoa login' "
            f"to create {credentials_path}"
        )

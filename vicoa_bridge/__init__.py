"""Relay an OpenCode terminal session to the Vicoa dashboard."""

__version__ = "0.1.0"

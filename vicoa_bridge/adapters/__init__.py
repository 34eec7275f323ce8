"""Adapters package - Bridge between the terminal and the dashboard.

This package contains the typed terminal events, the event bus, the two
HTTP clients, the message poller and the orchestrator that ties them
together.
"""
from __future__ import annotations

__all__ = [
    "BridgeOrchestrator",
    "EventBus",
    "MessagePoller",
    "OpenCodeClient",
    "VicoaClient",
]

from vicoa_bridge.adapters.event_bus import EventBus
from vicoa_bridge.adapters.message_poller import MessagePoller
from vicoa_bridge.adapters.orchestrator import BridgeOrchestrator
from vicoa_bridge.adapters.remote_client import VicoaClient
from vicoa_bridge.adapters.terminal_client import OpenCodeClient

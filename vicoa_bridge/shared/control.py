"""Control directives from the dashboard and agent selector cycling.

The dashboard sends settings changes as a small JSON payload, either alone or
embedded in prose::

    {"type": "control", "setting": "agent_type", "value": "plan"}
    {"control_command": {"setting": "interrupt"}}
    Agent changed to Plan. {"type": "control", "setting": "agent_type", "value": "plan"}

The terminal's agent selector is a ring: it can only be advanced one step
at a time with ``agent.cycle``. ``AgentCycleCoordinator`` computes how many
forward steps reach a target and issues them sequentially.
"""
from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Protocol

logger = logging.getLogger(__name__)

SETTING_INTERRUPT = "interrupt"
SETTING_AGENT_TYPE = "agent_type"
KNOWN_SETTINGS = frozenset({SETTING_INTERRUPT, SETTING_AGENT_TYPE})

CYCLE_COMMAND = "agent.cycle"

_JSON_OBJECT = re.compile(r"\{[^{}]*\}")


@dataclass(frozen=True)
class ControlCommand:
    setting: str
    value: Any = None

    @property
    def known(self) -> bool:
        return self.setting in KNOWN_SETTINGS


def _payload_from(parsed: Any) -> dict | None:
    if not isinstance(parsed, dict):
        return None
    wrapped = parsed.get("control_command")
    if isinstance(wrapped, dict):
        return wrapped
    if parsed.get("type") == "control":
        return parsed
    return None


def _to_command(payload: dict) -> ControlCommand:
    setting = payload.get("setting")
    return ControlCommand(
        setting=setting if isinstance(setting, str) else "",
        value=payload.get("value"),
    )


def extract_control_command(text: str) -> ControlCommand | None:
    """Find a control payload in *text*, or None for an ordinary prompt."""
    trimmed = (text or "").strip()
    if not trimmed:
        return None

    try:
        payload = _payload_from(json.loads(trimmed))
    except ValueError:
        payload = None
    if payload is not None:
        return _to_command(payload)

    for candidate in _JSON_OBJECT.findall(trimmed):
        try:
            payload = _payload_from(json.loads(candidate))
        except ValueError:
            continue
        if payload is not None:
            return _to_command(payload)
    return None


def build_control_payload(setting: str, value: Any = None) -> str:
    return json.dumps({"type": "control", "setting": setting, "value": value})


def build_agent_switch_notice(agent_name: str) -> str:
    """Message telling the dashboard the terminal switched agents."""
    payload = build_control_payload(SETTING_AGENT_TYPE, agent_name.lower())
    return f"Agent changed to {agent_name}. {payload}"


class CommandExecutor(Protocol):
    async def execute_command(self, name: str) -> None: ...


class AgentCycleCoordinator:
    """Steers the terminal's forward-only agent selector to a target."""

    def __init__(self, command: str = CYCLE_COMMAND) -> None:
        self._command = command
        self._lock = asyncio.Lock()

    @staticmethod
    def steps_to(agents: list[str], current: str | None, target: str) -> int | None:
        """Forward steps from *current* to *target* on the ring, or None.

        An unknown *current* (None) is assumed to sit at index 0: before any
        user message is observed the selector shows the default agent.
        """
        if target not in agents:
            return None
        if current is None:
            i = 0
        elif current in agents:
            i = agents.index(current)
        else:
            return None
        j = agents.index(target)
        return (j - i + len(agents)) % len(agents)

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def cycle_to(
        self,
        executor: CommandExecutor,
        agents: list[str],
        current: str | None,
        target: str,
    ) -> bool:
        """Issue the forward steps one at a time. False if not computable."""
        async with self._lock:
            steps = self.steps_to(agents, current, target)
            if steps is None:
                logger.warning(
                    "Cannot place selector: current=%r target=%r agents=%s",
                    current, target, agents,
                )
                return False
            for _ in range(steps):
                await executor.execute_command(self._command)
            logger.debug("Cycled selector %d step(s) to %s", steps, target)
            return True

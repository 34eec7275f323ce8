"""HTTP client for the OpenCode server that drives the terminal UI.

Failures raise ``TransportError``; the orchestrator decides per event
whether to report them to the dashboard or just log them.
"""
from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import aiohttp

from vicoa_bridge.engine.errors import TransportError
from vicoa_bridge.shared.commands import EXECUTE_COMMAND_KEYS
from vicoa_bridge.shared.permission import Decision

logger = logging.getLogger(__name__)

SERVICE = "opencode"
_REQUEST_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, ValueError)


def needs_trailing_space(text: str) -> bool:
    """Mentions and slash commands resolve only when followed by a space."""
    return "@" in text or text.startswith("/")


class OpenCodeClient:
    def __init__(self, base_url: str, timeout_seconds: float = 30.0) -> None:
        self.base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _call(
        self,
        method: str,
        path: str,
        operation: str,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        try:
            async with self._get_session().request(method, url, json=json_body) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    raise TransportError(SERVICE, operation, f"{resp.status} {resp.reason} - {body}")
                if resp.content_type != "application/json":
                    return None
                return await resp.json()
        except _REQUEST_ERRORS as exc:
            raise TransportError(SERVICE, operation, str(exc)) from exc

    async def append_prompt(self, text: str) -> None:
        await self._call("POST", "/tui/append-prompt", "append prompt", {"text": text})

    async def submit_prompt(self) -> None:
        await self._call("POST", "/tui/submit-prompt", "submit prompt")

    async def submit_text(self, text: str) -> None:
        """Type *text* into the prompt and submit it."""
        await self.append_prompt(text)
        if needs_trailing_space(text):
            await self.append_prompt(" ")
        await self.submit_prompt()

    async def execute_command(self, name: str) -> None:
        """Run a terminal action such as ``agent.cycle`` or ``session.new``."""
        key = EXECUTE_COMMAND_KEYS.get(name)
        if key is not None:
            await self._call("POST", "/tui/execute-command", f"execute {name}", {"command": key})
            return
        await self._call(
            "POST", "/tui/publish", f"publish {name}",
            {"type": "tui.command.execute", "properties": {"command": name}},
        )

    async def list_selectable_agents(self) -> list[str]:
        """Primary agent names in the order the selector cycles through them."""
        data = await self._call("GET", "/agent", "list agents")
        if not isinstance(data, list):
            raise TransportError(SERVICE, "list agents", "unexpected response shape")
        return [
            str(agent["name"])
            for agent in data
            if isinstance(agent, dict)
            and agent.get("name")
            and agent.get("mode") != "subagent"
            and not agent.get("hidden")
        ]

    async def reply_to_permission(
        self, session_id: str, permission_id: str, decision: Decision | str,
    ) -> None:
        response = decision.value if isinstance(decision, Decision) else str(decision)
        await self._call(
            "POST", f"/session/{session_id}/permissions/{permission_id}",
            "reply to permission", {"response": response},
        )

    async def share_session(self, session_id: str) -> str | None:
        data = await self._call("POST", f"/session/{session_id}/share", "share session")
        share = data.get("share") if isinstance(data, dict) else None
        url = share.get("url") if isinstance(share, dict) else None
        return url if isinstance(url, str) and url else None

    async def stream_events(self) -> AsyncIterator[dict[str, Any]]:
        """Yield ``{type, properties}`` payloads from the server-sent event stream.

        Returns when the server closes the stream. Malformed payloads are
        skipped.
        """
        url = f"{self.base_url}/event"
        # The stream is long-lived: only the connect phase is bounded.
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=self._timeout.total)
        try:
            async with self._get_session().get(
                url, timeout=timeout, headers={"Accept": "text/event-stream"},
            ) as resp:
                if resp.status >= 400:
                    raise TransportError(SERVICE, "subscribe to events", f"{resp.status} {resp.reason}")
                data_lines: list[str] = []
                async for raw in resp.content:
                    line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
                    if line.startswith("data:"):
                        data_lines.append(line[5:].lstrip(" "))
                        continue
                    if line or not data_lines:
                        continue
                    payload = "\n".join(data_lines)
                    data_lines = []
                    try:
                        event = json.loads(payload)
                    except ValueError:
                        logger.debug("Skipping malformed event payload: %.200s", payload)
                        continue
                    if isinstance(event, dict):
                        yield event
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(SERVICE, "subscribe to events", str(exc)) from exc

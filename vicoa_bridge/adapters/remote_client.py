"""HTTP client for the Vicoa dashboard REST API.

Every call except registration logs and swallows its failure: a dropped
status update or message must never take the bridge down.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any

import aiohttp

from vicoa_bridge.engine.errors import RegistrationError
from vicoa_bridge.shared.models.message import RemoteMessage

logger = logging.getLogger(__name__)

_REQUEST_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, ValueError)


class InstanceStatus(str, Enum):
    ACTIVE = "ACTIVE"
    AWAITING_INPUT = "AWAITING_INPUT"
    PAUSED = "PAUSED"
    STALE = "STALE"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    KILLED = "KILLED"
    DISCONNECTED = "DISCONNECTED"
    DELETED = "DELETED"


class VicoaClient:
    """Async client bound to one agent instance.

    ``last_message_id`` tracks the newest message either side has seen and
    is the cursor for polling and for input requests on idle.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        agent_instance_id: str,
        agent_type: str = "OpenCode",
        timeout_seconds: float = 30.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.agent_instance_id = agent_instance_id
        self.agent_type = agent_type
        self.last_message_id: str | None = None
        self._api_key = api_key
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
        level: int = logging.WARNING,
    ) -> dict[str, Any] | None:
        """Send a request; return the JSON body, ``{}`` for no body, None on failure."""
        url = f"{self.base_url}{path}"
        try:
            async with self._get_session().request(method, url, json=json, params=params) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    logger.log(level, "Failed to %s: %s %s - %s", operation, resp.status, resp.reason, body)
                    return None
                if resp.content_type != "application/json":
                    return {}
                data = await resp.json()
        except _REQUEST_ERRORS as exc:
            logger.log(level, "Error trying to %s: %s", operation, exc)
            return None
        return data if isinstance(data, dict) else {}

    def _remember(self, message_id: Any) -> str | None:
        if isinstance(message_id, str) and message_id:
            self.last_message_id = message_id
            return message_id
        return None

    async def register(self, project: str, home_dir: str) -> dict[str, Any]:
        """Register this agent instance. Raises RegistrationError on failure."""
        payload = {
            "agent_type": self.agent_type,
            "transport": "local",
            "agent_instance_id": self.agent_instance_id,
            "name": self.agent_type,
            "project": project,
            "home_dir": home_dir,
        }
        url = f"{self.base_url}/api/v1/agent-instances"
        try:
            async with self._get_session().post(url, json=payload) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    raise RegistrationError(
                        self.agent_instance_id, f"{resp.status} {resp.reason} - {body}",
                    )
                data = await resp.json(content_type=None)
        except _REQUEST_ERRORS as exc:
            raise RegistrationError(self.agent_instance_id, str(exc)) from exc
        logger.info("Registered agent instance %s (project=%s)", self.agent_instance_id, project)
        return data if isinstance(data, dict) else {}

    async def sync_commands(self, agent_type: str, commands: dict[str, dict[str, str]]) -> bool:
        result = await self._request(
            "POST", "/api/v1/commands/sync", "sync slash commands",
            json={"agent_type": agent_type, "commands": commands},
        )
        return result is not None

    async def send_message(self, content: str, requires_user_input: bool = False) -> str | None:
        """Post an agent message; returns its id or None."""
        result = await self._request(
            "POST", "/api/v1/messages/agent", "send message",
            json={
                "content": content,
                "agent_type": self.agent_type,
                "agent_instance_id": self.agent_instance_id,
                "requires_user_input": requires_user_input,
            },
        )
        if result is None:
            return None
        return self._remember(result.get("message_id"))

    async def send_user_message(self, content: str) -> str | None:
        """Mirror a message the user typed in the terminal."""
        result = await self._request(
            "POST", "/api/v1/messages/user", "send user message",
            json={"content": content, "agent_instance_id": self.agent_instance_id},
        )
        if result is None:
            return None
        return self._remember(result.get("message_id"))

    async def get_pending_messages(self) -> list[RemoteMessage]:
        params = {"agent_instance_id": self.agent_instance_id}
        if self.last_message_id:
            params["last_read_message_id"] = self.last_message_id
        result = await self._request(
            "GET", "/api/v1/messages/pending", "poll messages",
            params=params, level=logging.DEBUG,
        )
        if not result:
            return []
        if result.get("status") == "stale":
            logger.debug("Message polling returned stale status")
            return []
        raw = result.get("messages") or []
        messages = [RemoteMessage.from_dict(m) for m in raw if isinstance(m, dict)]
        if messages:
            self._remember(messages[-1].id)
        return messages

    async def request_user_input(self, message_id: str) -> None:
        await self._request(
            "PATCH", f"/api/v1/messages/{message_id}/request-input", "request user input",
        )

    async def update_status(self, status: InstanceStatus | str) -> None:
        value = status.value if isinstance(status, InstanceStatus) else str(status)
        await self._request(
            "PUT", f"/api/v1/agent-instances/{self.agent_instance_id}/status", "update status",
            json={"status": value},
        )

    async def update_agent_instance_name(self, name: str) -> None:
        await self._request(
            "PATCH", f"/api/v1/agent-instances/{self.agent_instance_id}",
            "update agent instance name",
            json={"name": name},
        )

    async def end_session(self) -> None:
        await self.update_status(InstanceStatus.COMPLETED)
        await self._request(
            "POST", "/api/v1/sessions/end", "end session",
            json={"agent_instance_id": self.agent_instance_id},
        )

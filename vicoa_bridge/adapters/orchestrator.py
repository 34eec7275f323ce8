"""Bridge orchestrator: reconciles the terminal and the dashboard.

Two inputs drive it. The ``MessagePoller`` hands over dashboard messages
in order; the terminal event stream is read into an ``EventBus`` and
consumed one event at a time by ``run``. Every registry the two flows
share (echo suppressor, sent-message tracker, part accumulator,
permission correlator) is owned here and mutated only in synchronous
steps between awaits.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from vicoa_bridge.adapters.event_bus import EventBus
from vicoa_bridge.adapters.events import (
    ChatMessage,
    InstanceDisposed,
    MessageUpdated,
    PartUpdated,
    PermissionAsked,
    PermissionReplied,
    ServerConnected,
    SessionCreated,
    SessionDeleted,
    SessionErrored,
    SessionIdle,
    SessionStatusChanged,
    SessionUpdated,
    TerminalEvent,
    error_message,
)
from vicoa_bridge.adapters.message_poller import MessagePoller
from vicoa_bridge.adapters.remote_client import InstanceStatus, VicoaClient
from vicoa_bridge.adapters.terminal_client import OpenCodeClient
from vicoa_bridge.engine.config import BridgeConfig
from vicoa_bridge.engine.errors import TransportError
from vicoa_bridge.shared.accumulator import MessagePartAccumulator
from vicoa_bridge.shared.commands import (
    OPENCODE_SLASH_AGENT_TYPE,
    ParsedSlashCommand,
    parse_slash_command,
    scan_opencode_commands,
)
from vicoa_bridge.shared.control import (
    SETTING_AGENT_TYPE,
    SETTING_INTERRUPT,
    AgentCycleCoordinator,
    ControlCommand,
    build_agent_switch_notice,
    extract_control_command,
)
from vicoa_bridge.shared.formatters.parts import render_tool_part
from vicoa_bridge.shared.models.message import MessageInfo, RemoteMessage
from vicoa_bridge.shared.models.parts import ToolPart
from vicoa_bridge.shared.path_utils import format_project_path
from vicoa_bridge.shared.permission import (
    PermissionCorrelator,
    build_permission_options,
    format_permission_request,
)
from vicoa_bridge.shared.registries import EchoSuppressor, SentMessageTracker
from vicoa_bridge.shared.text import preview, strip_tool_results

logger = logging.getLogger(__name__)

SESSION_STARTED_MESSAGE = "OpenCode session started, waiting for your input..."
RATE_LIMIT_MESSAGE = "Too Many Requests: Rate limit exceeded."
UNKNOWN_ERROR = "Unknown error"


def is_rate_limit_error(message: str) -> bool:
    lowered = message.lower()
    return "too many request" in lowered or "rate limit" in lowered or "429" in message


class BridgeOrchestrator:
    """Owns the reconciliation state and routes both message flows."""

    def __init__(
        self,
        config: BridgeConfig,
        remote: VicoaClient,
        terminal: OpenCodeClient,
        home_dir: str | Path | None = None,
    ) -> None:
        self.config = config
        self.remote = remote
        self.terminal = terminal
        self.home_dir = Path(home_dir) if home_dir is not None else Path.home()

        self.event_bus = EventBus()
        self.echoes = EchoSuppressor(config.echo_buffer_size, config.echo_evict_batch)
        self.sent_messages = SentMessageTracker(config.sent_message_limit)
        self.parts = MessagePartAccumulator(config.reasoning_limit)
        self.permissions = PermissionCorrelator()
        self.cycler = AgentCycleCoordinator()
        self.poller = MessagePoller(
            remote, self.handle_remote_message, config.poll_interval_seconds,
        )

        self.session_id: str | None = None
        self.session_title: str | None = None
        self.session_status: str | None = None
        # Agent the terminal selector currently shows, as last observed.
        self.current_agent: str | None = None
        # Agent the user most recently asked for from either side.
        self.preferred_agent: str | None = None

        # User messages typed in the terminal, awaiting their text parts.
        self._pending_user: dict[str, MessageInfo] = {}
        self._flushed_user = SentMessageTracker(config.sent_message_limit)
        self._registered = False
        self._session_ended = False
        self._stream_task: asyncio.Task | None = None

    # ── Lifecycle ───────────────────────────────────────────────────

    async def start(self) -> None:
        """Register with the dashboard and begin polling.

        Raises RegistrationError when the dashboard refuses the instance.
        """
        project = format_project_path(self.config.project_dir, home=self.home_dir)
        await self.remote.register(project, str(self.home_dir))
        self._registered = True
        logger.info("Registered session: %s", self.config.agent_instance_id)
        await self.remote.send_message(SESSION_STARTED_MESSAGE)
        await self._sync_slash_commands()
        self.poller.start()

    async def _sync_slash_commands(self) -> None:
        try:
            commands = scan_opencode_commands(self.config.project_dir, self.home_dir)
        except OSError as exc:
            logger.warning("Failed to scan OpenCode slash commands: %s", exc)
            return
        if commands and await self.remote.sync_commands(OPENCODE_SLASH_AGENT_TYPE, commands):
            logger.info("Synced %d OpenCode slash commands", len(commands))

    async def run(self) -> None:
        """Start, then consume terminal events until disposal or shutdown."""
        await self.start()
        self._stream_task = asyncio.create_task(self._pump_events(), name="opencode-events")
        try:
            async for event in self.event_bus.consume():
                await self.handle_event(event)
        finally:
            self._stream_task.cancel()
            try:
                await self._stream_task
            except asyncio.CancelledError:
                pass
            self._stream_task = None

    async def _pump_events(self) -> None:
        """Read the terminal event stream into the bus, reconnecting on drops."""
        while not self.event_bus.closed:
            try:
                async for data in self.terminal.stream_events():
                    await self.event_bus.publish(data)
                logger.info("OpenCode event stream closed by server")
            except TransportError as exc:
                logger.warning("OpenCode event stream failed: %s", exc)
            if not self.event_bus.closed:
                await asyncio.sleep(self.config.reconnect_delay_seconds)

    async def shutdown(self) -> None:
        """Stop polling, end the dashboard session once, release clients."""
        self.poller.stop()
        self.event_bus.close()
        await self._end_session()
        await self.poller.wait_closed()
        await self.remote.close()
        await self.terminal.close()

    async def _end_session(self) -> None:
        if self._session_ended or not self._registered:
            return
        self._session_ended = True
        await self.remote.end_session()

    # ── Dashboard → terminal ────────────────────────────────────────

    async def handle_remote_message(self, message: RemoteMessage) -> None:
        text = message.content
        logger.info("Received message from dashboard: %s", preview(text))

        control = extract_control_command(text)
        if control is not None:
            await self._handle_control(control)
            await self.remote.update_status(InstanceStatus.AWAITING_INPUT)
            return

        claimed = self.permissions.claim(text)
        if claimed is not None:
            pending, decision = claimed
            logger.info("Replying to permission %s with %r", pending.id, decision.value)
            try:
                await self.terminal.reply_to_permission(pending.session_id, pending.id, decision)
            except TransportError as exc:
                logger.error("Failed to reply to permission %s: %s", pending.id, exc)
            return

        command = parse_slash_command(text)
        if command is not None and command.is_direct:
            await self._run_slash_command(command)
            return

        # Recorded first so the terminal's copy of this prompt is not mirrored back.
        self.echoes.record(text)
        try:
            await self.terminal.submit_text(text)
        except TransportError as exc:
            self.echoes.consume_if_present(text)
            logger.error("Failed to submit prompt to OpenCode: %s", exc)
            return
        logger.info("Executed prompt in OpenCode: %s", preview(text))

    async def _run_slash_command(self, command: ParsedSlashCommand) -> None:
        if command.name == "share" and self.session_id:
            try:
                url = await self.terminal.share_session(self.session_id)
            except TransportError as exc:
                logger.warning("Failed to share session, falling back to TUI action: %s", exc)
            else:
                if url:
                    await self.remote.send_message(f"Share url: {url}")
                    logger.info("Shared session and sent URL to dashboard: %s", url)
                else:
                    logger.warning("Session shared but no URL in response")
                return

        try:
            await self.terminal.execute_command(command.action)
        except TransportError as exc:
            logger.error("Failed to execute /%s: %s", command.raw_name, exc)
            return
        logger.info("Executed slash command: /%s", command.raw_name)

    async def _handle_control(self, control: ControlCommand) -> None:
        if control.setting == SETTING_INTERRUPT:
            await self._interrupt()
        elif control.setting == SETTING_AGENT_TYPE:
            await self._switch_agent(control.value)
        else:
            logger.warning("Unknown control command: %s", control.setting)

    async def _interrupt(self) -> None:
        logger.info("Interrupt command received")
        if not self.session_id:
            await self.remote.send_message("Failed to interrupt")
            logger.warning("Interrupt failed: no active session")
            return
        if self.session_status == "idle":
            await self.remote.send_message("OpenCode is idle.")
            return
        try:
            # The first press arms the interrupt, the second confirms it.
            await self.terminal.execute_command("session.interrupt")
            await self.terminal.execute_command("session.interrupt")
        except TransportError as exc:
            await self.remote.send_message("Failed to interrupt.")
            logger.error("TUI interrupt failed: %s", exc)
            return
        await self.remote.send_message("Interrupted")

    async def _switch_agent(self, value: object) -> None:
        requested = value.lower() if isinstance(value, str) else ""
        if not requested:
            logger.warning("Agent type control command missing value")
            return

        try:
            agents = await self.terminal.list_selectable_agents()
        except TransportError as exc:
            logger.warning("Could not list agents for validation: %s", exc)
            self.preferred_agent = requested
            await self.remote.send_message(f"Agent changed to {requested}.")
            return

        match = next((name for name in agents if name.lower() == requested), None)
        if match is None:
            logger.warning("Unknown agent %r. Available: %s", requested, ", ".join(agents))
            await self.remote.send_message(
                f'Unknown agent "{requested}". Available agents: {", ".join(agents)}'
            )
            return

        self.preferred_agent = match
        try:
            cycled = await self.cycler.cycle_to(self.terminal, agents, self.current_agent, match)
        except TransportError as exc:
            logger.warning("Cycling the agent selector failed: %s", exc)
            cycled = False
        if cycled:
            self.current_agent = match
            logger.info("TUI agent indicator cycled to %s", match)
        else:
            logger.warning("Could not cycle TUI to %s", match)
        await self.remote.send_message(f"Agent changed to {match}.")

    # ── Terminal → dashboard ────────────────────────────────────────

    async def handle_event(self, event: TerminalEvent) -> None:
        try:
            if isinstance(event, PartUpdated):
                await self._handle_part_updated(event)
            elif isinstance(event, MessageUpdated):
                await self._handle_message_updated(event)
            elif isinstance(event, ChatMessage):
                await self._handle_chat_message(event)
            elif isinstance(event, PermissionAsked):
                await self._handle_permission_asked(event)
            elif isinstance(event, PermissionReplied):
                if self.permissions.discard(event.permission_id):
                    logger.debug("Cleaned up replied permission: %s", event.permission_id)
            elif isinstance(event, SessionCreated):
                await self._handle_session_created(event)
            elif isinstance(event, SessionUpdated):
                await self._handle_session_updated(event)
            elif isinstance(event, SessionDeleted):
                self.session_id = None
                await self._end_session()
            elif isinstance(event, SessionIdle):
                await self._handle_session_idle()
            elif isinstance(event, SessionStatusChanged):
                await self._handle_session_status(event)
            elif isinstance(event, SessionErrored):
                await self._handle_session_error(event)
            elif isinstance(event, ServerConnected):
                logger.info("OpenCode server connected")
            elif isinstance(event, InstanceDisposed):
                await self._handle_disposed(event)
            elif "error" in event.event_type:
                await self._handle_unknown_error(event)
        except TransportError as exc:
            logger.warning("Transport failure handling %s: %s", event.event_type, exc)
        except Exception:
            logger.exception("Error processing event: %s", event.event_type)

    async def _handle_part_updated(self, event: PartUpdated) -> None:
        part = event.part
        if part is None:
            return
        if isinstance(part, ToolPart):
            # Sent on its own once finished; pending/running sends nothing.
            if part.state.finished:
                formatted = render_tool_part(part)
                if formatted:
                    await self.remote.send_message(formatted)
            return
        # Late parts of an already forwarded message would never be freed.
        if self._flushed_user.has(part.message_id) or self.sent_messages.has(part.message_id):
            logger.debug("Ignoring part %s of forwarded message %s", part.id, part.message_id)
            return
        self.parts.apply_part_event(part, event.delta)

    async def _handle_message_updated(self, event: MessageUpdated) -> None:
        message = event.message
        if message is None:
            return

        if message.is_user:
            if not self._flushed_user.has(message.id):
                self._pending_user[message.id] = message
            if message.agent:
                await self._observe_agent(message.agent)
            return

        if message.parent_id in self._pending_user:
            await self._flush_user_message(message.parent_id)

        # message.updated fires on every intermediate update; act only once
        # the assistant message has finished.
        if not message.is_completed_assistant:
            return
        text = self.parts.finalize(message.id)
        if text and not self.sent_messages.has(message.id):
            await self.remote.send_message(text)
            self.sent_messages.track(message.id)

    async def _observe_agent(self, agent: str) -> None:
        """Track the selector from user messages, the only signal of terminal-side switches."""
        previous = self.current_agent
        self.current_agent = agent
        self.preferred_agent = agent
        if previous != agent:
            await self.remote.send_message(build_agent_switch_notice(agent))
            logger.info("Forwarded terminal agent change to dashboard: %s", agent)

    async def _flush_user_message(self, message_id: str) -> None:
        self._pending_user.pop(message_id, None)
        self._flushed_user.track(message_id)
        texts = self.parts.texts(message_id)
        self.parts.discard(message_id)
        await self._forward_user_text(texts)

    async def _handle_chat_message(self, event: ChatMessage) -> None:
        if event.message is not None:
            if not event.message.is_user:
                return
            self._pending_user.pop(event.message.id, None)
            self._flushed_user.track(event.message.id)
            self.parts.discard(event.message.id)
        await self._forward_user_text([p.text for p in event.text_parts])

    async def _forward_user_text(self, texts: list[str]) -> None:
        # Tool-result blocks appended by @file resolution are not part of
        # what the user typed.
        cleaned = (strip_tool_results(t) for t in texts)
        full_text = "\n".join(t for t in cleaned if t.strip())
        if not full_text:
            return
        if self.echoes.consume_if_present(full_text):
            logger.debug("Skipping message from dashboard: %s", preview(full_text))
            return
        logger.info("User message from terminal: %s", preview(full_text))
        await self.remote.send_user_message(full_text)

    async def _handle_permission_asked(self, event: PermissionAsked) -> None:
        permission = event.permission
        if permission is None or not permission.id:
            return
        options = build_permission_options(permission)
        message_id = await self.remote.send_message(
            format_permission_request(permission, options), requires_user_input=True,
        )
        self.permissions.open(permission, options, message_id)
        logger.info("Tracked pending permission: %s", permission.id)

    async def _handle_session_created(self, event: SessionCreated) -> None:
        if event.session is None:
            return
        self.session_id = event.session.id
        self.session_title = event.session.title
        self._session_ended = False
        logger.info("Session created: %s", event.session.id)
        await self.remote.update_status(InstanceStatus.ACTIVE)

    async def _handle_session_updated(self, event: SessionUpdated) -> None:
        title = event.session.title if event.session else None
        if title and title != self.session_title:
            self.session_title = title
            await self.remote.update_agent_instance_name(title)
            logger.info("Updated session title: %s", title)

    async def _handle_session_idle(self) -> None:
        logger.info("Session idle")
        self.session_status = "idle"
        for message_id in list(self._pending_user):
            await self._flush_user_message(message_id)
        await self.remote.update_status(InstanceStatus.AWAITING_INPUT)
        if self.remote.last_message_id:
            await self.remote.request_user_input(self.remote.last_message_id)

    async def _handle_session_status(self, event: SessionStatusChanged) -> None:
        self.session_status = event.status
        if event.status in ("busy", "retry"):
            await self.remote.update_status(InstanceStatus.ACTIVE)
        elif event.status == "idle":
            await self.remote.update_status(InstanceStatus.AWAITING_INPUT)

    async def _report_error(self, message: str) -> None:
        if is_rate_limit_error(message):
            await self.remote.send_message(RATE_LIMIT_MESSAGE)
        elif message != UNKNOWN_ERROR:
            await self.remote.send_message(f"Error: {message}")

    async def _handle_session_error(self, event: SessionErrored) -> None:
        message = event.message or UNKNOWN_ERROR
        logger.error("Session error: %s", message)
        # The generic placeholder carries nothing worth showing.
        if message == UNKNOWN_ERROR:
            return
        await self._report_error(message)
        await self.remote.update_status(InstanceStatus.AWAITING_INPUT)

    async def _handle_unknown_error(self, event: TerminalEvent) -> None:
        message = error_message(event.properties) or UNKNOWN_ERROR
        logger.warning("Unhandled error event %s: %s", event.event_type, message)
        await self._report_error(message)
        await self.remote.update_status(InstanceStatus.AWAITING_INPUT)

    async def _handle_disposed(self, event: InstanceDisposed) -> None:
        logger.info("%s: ending session", event.event_type)
        self.poller.stop()
        self.event_bus.close()
        await self._end_session()

# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Web server hosting a practice reading session.

Speech recognition and display run outside this process. They connect over
a WebSocket (or plain JSON POSTs) to deliver recognized fragments and
navigation commands, and receive the tracker state after every change.
"""

import asyncio
import contextlib
import json
import logging
from typing import Any

from aiohttp import web

from . import debug_log
from .config import DEFAULT_CONFIG, ScriptSettings, TrackingSettings
from .scheduler import AsyncioScheduler
from .script import load_reference_script
from .tracker import ParagraphTracker, TrackerEvent

logger = logging.getLogger(__name__)


class WebServer:
    """
    Owns the ParagraphTracker for the current script and relays it to clients.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 8000,
        tracking_settings: TrackingSettings | None = None,
        script_settings: ScriptSettings | None = None
    ) -> None:
        self.host: str = host
        self.port: int = port
        self.tracking_settings: TrackingSettings = (
            tracking_settings or DEFAULT_CONFIG["tracking"]
        )
        self.script_settings: ScriptSettings = (
            script_settings or DEFAULT_CONFIG["script"]
        )
        self.app: web.Application = web.Application()
        self.websockets: set[web.WebSocketResponse] = set()
        self.runner: web.AppRunner | None = None

        # Current state
        self.script_text: str = ""
        self.tracker: ParagraphTracker | None = None
        self.scheduler = AsyncioScheduler()
        self._tasks: set[asyncio.Task[None]] = set()

        self._setup_routes()

    def _setup_routes(self) -> None:
        """Set up HTTP routes."""
        self.app.router.add_get('/ws', self._handle_websocket)
        self.app.router.add_get('/state', self._handle_get_state)
        self.app.router.add_post('/script', self._handle_script_upload)
        self.app.router.add_post('/fragment', self._handle_fragment)
        self.app.router.add_post('/navigate', self._handle_navigate)

    # Session

    def load_script(self, text: str, render_markdown: bool | None = None) -> bool:
        """
        Replace the current script and start a new session.

        Args:
            text: Script text, one paragraph per line
            render_markdown: Override the configured Markdown setting

        Returns:
            True if the script had at least one paragraph
        """
        if render_markdown is None:
            render_markdown = self.script_settings.get("render_markdown", False)
        paragraphs = load_reference_script(
            text,
            render_markdown=render_markdown,
            skip_blank_lines=self.script_settings.get("skip_blank_lines", True)
        )
        if not paragraphs:
            logger.warning("Ignoring script with no paragraphs")
            return False

        if self.tracker:
            self.tracker.close()

        self.script_text = text
        self.tracker = ParagraphTracker.from_settings(
            paragraphs, self.tracking_settings, scheduler=self.scheduler)
        self.tracker.add_listener(self._on_tracker_event)
        debug_log.clear_logs()
        logger.info("Script loaded: %d paragraphs", len(paragraphs))
        return True

    def state_message(self) -> dict[str, Any]:
        """Current tracker state as a JSON-ready dict."""
        if self.tracker is None:
            return {"type": "state", "paragraphCount": 0, "script": self.script_text}
        message: dict[str, Any] = {"type": "state", "script": self.script_text}
        message.update(self.tracker.snapshot().to_dict())
        return message

    def _on_tracker_event(self, event: TrackerEvent) -> None:
        """Relay tracker notifications; may run from a timer callback."""
        task = asyncio.get_running_loop().create_task(self._broadcast_event(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _broadcast_event(self, event: TrackerEvent) -> None:
        message: dict[str, Any] = {"type": "notification"}
        message.update(event.to_dict())
        await self.broadcast(message)
        await self.broadcast(self.state_message())

    def _apply_navigation(self, action: str, index: Any = None) -> bool:
        """Run a navigation command. Returns False for unknown commands."""
        assert self.tracker is not None, "Tracker must be initialized"
        if action == "next":
            self.tracker.next_paragraph()
        elif action == "previous":
            self.tracker.previous_paragraph()
        elif action == "reset":
            self.tracker.reset()
        elif action == "navigate":
            if not isinstance(index, int) or isinstance(index, bool):
                return False
            self.tracker.navigate(index)
        else:
            return False
        return True

    # WebSocket

    async def _handle_websocket(self, request: web.Request) -> web.WebSocketResponse:
        """Handle WebSocket connections for real-time updates."""
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        self.websockets.add(ws)
        logger.info("WebSocket connected. Total: %d", len(self.websockets))

        try:
            init: dict[str, Any] = self.state_message()
            init["type"] = "init"
            await ws.send_json(init)

            async for msg in ws:
                if msg.type == web.WSMsgType.TEXT:
                    try:
                        data = json.loads(msg.data)
                    except json.JSONDecodeError as e:
                        logger.warning("Invalid JSON from WebSocket client: %s", e)
                        await ws.send_json({"type": "error", "message": f"Invalid JSON: {e}"})
                        continue
                    if not isinstance(data, dict):
                        await ws.send_json({"type": "error", "message": "Expected an object"})
                        continue
                    await self._handle_ws_message(ws, data)
                elif msg.type == web.WSMsgType.ERROR:
                    logger.warning("WebSocket error: %s", ws.exception())
        finally:
            self.websockets.discard(ws)
            logger.info("WebSocket disconnected. Total: %d", len(self.websockets))

        return ws

    async def _handle_ws_message(self, ws: web.WebSocketResponse, data: dict[str, Any]) -> None:
        """Handle incoming WebSocket messages using dispatch pattern."""
        msg_type: object | None = data.get("type")
        if not msg_type or not isinstance(msg_type, str):
            return

        # Message type to handler dispatch
        handlers: dict[str, Any] = {
            "script": self._on_script_message,
            "fragment": self._on_fragment_message,
            "next": self._on_navigation_message,
            "previous": self._on_navigation_message,
            "reset": self._on_navigation_message,
            "navigate": self._on_navigation_message,
            "get_state": self._on_get_state_message,
        }

        handler = handlers.get(msg_type)  # type: ignore[arg-type]
        if handler:
            await handler(ws, data)
        else:
            logger.warning("Unhandled WebSocket message: %s", msg_type)

    async def _on_script_message(self, ws: web.WebSocketResponse, data: dict[str, Any]) -> None:
        """Handle script update message."""
        markdown_flag = data.get("markdown")
        if self.load_script(
            str(data.get("text", "")),
            render_markdown=bool(markdown_flag) if markdown_flag is not None else None
        ):
            await self.broadcast(self.state_message())
        else:
            await ws.send_json({"type": "error", "message": "Script has no paragraphs"})

    async def _on_fragment_message(self, ws: web.WebSocketResponse, data: dict[str, Any]) -> None:
        """Handle a recognized text fragment."""
        if self.tracker is None:
            await ws.send_json({"type": "error", "message": "No script loaded"})
            return
        text = str(data.get("text", ""))
        if not text.strip():
            return
        self.tracker.on_fragment(text)
        await self.broadcast(self.state_message())

    async def _on_navigation_message(self, ws: web.WebSocketResponse, data: dict[str, Any]) -> None:
        """Handle next/previous/reset/navigate messages."""
        if self.tracker is None:
            await ws.send_json({"type": "error", "message": "No script loaded"})
            return
        if not self._apply_navigation(str(data.get("type")), data.get("index")):
            await ws.send_json({"type": "error", "message": "Invalid navigation request"})

    async def _on_get_state_message(self, ws: web.WebSocketResponse, _data: dict[str, Any]) -> None:
        await ws.send_json(self.state_message())

    # HTTP

    async def _read_json(self, request: web.Request) -> dict[str, Any] | None:
        try:
            data = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("Invalid JSON in %s %s: %s", request.method, request.path, e)
            return None
        if not isinstance(data, dict):
            logger.warning("Expected a JSON object in %s %s", request.method, request.path)
            return None
        return data

    async def _handle_get_state(self, request: web.Request) -> web.Response:
        """Get the current tracker state."""
        return web.json_response(self.state_message())

    async def _handle_script_upload(self, request: web.Request) -> web.Response:
        """Handle script upload via POST."""
        data = await self._read_json(request)
        if data is None:
            return web.json_response(
                {"status": "error", "message": "Expected a JSON object"}, status=400)

        markdown_flag = data.get("markdown")
        if not self.load_script(
            str(data.get("text", "")),
            render_markdown=bool(markdown_flag) if markdown_flag is not None else None
        ):
            return web.json_response(
                {"status": "error", "message": "Script has no paragraphs"}, status=400)

        state = self.state_message()
        await self.broadcast(state)
        return web.json_response({"status": "ok", "state": state})

    async def _handle_fragment(self, request: web.Request) -> web.Response:
        """Handle a recognized fragment via POST."""
        data = await self._read_json(request)
        if data is None:
            return web.json_response(
                {"status": "error", "message": "Expected a JSON object"}, status=400)
        if self.tracker is None:
            return web.json_response(
                {"status": "error", "message": "No script loaded"}, status=409)

        text = str(data.get("text", ""))
        if text.strip():
            self.tracker.on_fragment(text)
            await self.broadcast(self.state_message())
        return web.json_response({"status": "ok", "state": self.state_message()})

    async def _handle_navigate(self, request: web.Request) -> web.Response:
        """Handle a navigation command via POST."""
        data = await self._read_json(request)
        if data is None:
            return web.json_response(
                {"status": "error", "message": "Expected a JSON object"}, status=400)
        if self.tracker is None:
            return web.json_response(
                {"status": "error", "message": "No script loaded"}, status=409)

        if not self._apply_navigation(str(data.get("action", "")), data.get("index")):
            return web.json_response(
                {"status": "error", "message": "Invalid navigation request"}, status=400)
        return web.json_response({"status": "ok", "state": self.state_message()})

    async def broadcast(self, message: dict[str, Any]) -> None:
        """Send a message to all connected WebSocket clients."""
        if not self.websockets:
            return

        dead: set[web.WebSocketResponse] = set()
        # Sends yield, so clients may connect or disconnect mid-loop
        for ws in list(self.websockets):
            try:
                await ws.send_json(message)
            except (ConnectionError, ConnectionResetError, RuntimeError) as e:
                logger.warning("Error sending to WebSocket: %s", e)
                dead.add(ws)

        self.websockets -= dead

    async def start(self) -> None:
        """Start the web server."""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site: web.TCPSite = web.TCPSite(self.runner, self.host, self.port)
        await site.start()
        logger.info("Web server running at http://%s:%d", self.host, self.port)

    async def stop(self) -> None:
        """Stop the web server."""
        if self.tracker:
            self.tracker.close()

        # Close all WebSocket connections
        for ws in list(self.websockets):
            with contextlib.suppress(Exception):
                await ws.close()
        self.websockets.clear()

        if self.runner:
            await self.runner.cleanup()

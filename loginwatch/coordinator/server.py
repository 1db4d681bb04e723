"""Loopback HTTP server carrying the agent message channel plus health endpoints."""

from __future__ import annotations

import json
import logging
import time

from aiohttp import web

from .service import Coordinator

logger = logging.getLogger(__name__)


class CoordinatorServer:
    """Serves ``/message``, ``/healthz`` and ``/metrics``."""

    def __init__(self, coordinator: Coordinator, host: str = "127.0.0.1", port: int = 8765):
        self.coordinator = coordinator
        self.host = host
        self.port = port
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None
        self._started_at = time.monotonic()

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/message", self._handle_message)
        app.router.add_get("/healthz", self._handle_health)
        app.router.add_get("/metrics", self._handle_metrics)
        return app

    async def start(self):
        """Start the coordinator server."""
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()
        logger.info("Coordinator listening on %s:%s", self.host, self.port)

    async def stop(self):
        """Stop the coordinator server."""
        if self._site:
            await self._site.stop()
        if self._runner:
            await self._runner.cleanup()
        self._runner = None
        self._site = None

    def status(self) -> dict:
        payload = {"uptime_seconds": int(time.monotonic() - self._started_at)}
        payload.update(self.coordinator.status())
        return payload

    async def _handle_message(self, request: web.Request) -> web.Response:
        try:
            message = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return web.json_response({"success": False, "error": "Invalid request body"}, status=400)
        if not isinstance(message, dict):
            return web.json_response({"success": False, "error": "Invalid request body"}, status=400)
        reply = await self.coordinator.handle_message(message)
        return web.json_response(reply)

    async def _handle_health(self, request: web.Request) -> web.Response:
        """Return JSON health status."""
        try:
            payload = self.status()
        except Exception as exc:
            logger.warning("Health status provider failed: %s", exc)
            payload = {"status": "error", "message": str(exc)}

        payload.setdefault("status", "ok")
        return web.json_response(payload)

    async def _handle_metrics(self, request: web.Request) -> web.Response:
        """Expose numeric status fields as plain-text gauges."""
        try:
            data = self.status()
        except Exception as exc:
            logger.warning("Metrics status provider failed: %s", exc)
            return web.Response(text='loginwatch_status{state="error"} 1\n')

        lines = []
        for key, value in data.items():
            metric_key = str(key).replace(".", "_").replace("-", "_")
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                continue
            lines.append(f"loginwatch_{metric_key} {value}")
        if not lines:
            lines.append('loginwatch_status{state="empty"} 1')

        return web.Response(text="\n".join(lines) + "\n")

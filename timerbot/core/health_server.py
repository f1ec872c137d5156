"""HTTP status server"""

from __future__ import annotations

import asyncio
import html
import logging
from typing import TYPE_CHECKING

from aiohttp import web

if TYPE_CHECKING:
    from timerbot.core.bot import TimerBot

logger = logging.getLogger("Bot.Health")

_STATUS_PAGE = """<!DOCTYPE html>
<html>
<head>
    <title>Twitch Timer Bot Status</title>
    <style>
        body {{ font-family: Arial, sans-serif; max-width: 800px; margin: 50px auto;
               padding: 20px; background-color: #f0f0f0; }}
        .status-box {{ background-color: white; padding: 30px; border-radius: 10px;
                      box-shadow: 0 2px 10px rgba(0,0,0,0.1); }}
        .online {{ color: #4CAF50; font-weight: bold; }}
        .offline {{ color: #f44336; font-weight: bold; }}
        h1 {{ color: #9146FF; }}
        .command {{ background-color: #f5f5f5; padding: 2px 6px; border-radius: 3px;
                   font-family: monospace; }}
        .permission-info {{ background-color: #e3f2fd; padding: 15px; border-radius: 5px;
                           margin: 20px 0; }}
    </style>
</head>
<body>
    <div class="status-box">
        <h1>🤖 Twitch Timer Bot</h1>
        <p>Status: <span class="{status_class}">{status_text}</span></p>
        <p>Bot Username: {bot_username}</p>
        <p>Channel: {channel}</p>
        <p>Uptime: {uptime_minutes} minutes</p>
        <p>Active Timers: {timers}</p>

        <div class="permission-info">
            <strong>🔒 Permission Settings:</strong><br>
            {permissions}
        </div>

        <hr>
        <h3>Available Commands:</h3>
        <ul>
            <li><span class="command">!10min</span> - Start a 10-minute timer</li>
            <li><span class="command">!15min2</span> - Start a 15-minute timer with 2-minute updates</li>
            <li><span class="command">!pause</span> - Pause your active timer</li>
            <li><span class="command">!resume</span> - Resume your paused timer</li>
            <li><span class="command">!stoptimer</span> - Stop your active timers</li>
            <li><span class="command">!timers</span> - Check your active timers</li>
        </ul>

        <h3>Permission System:</h3>
        <p>Commands can be restricted to specific users or roles.
        This prevents random viewers from starting timers.</p>
    </div>
</body>
</html>
"""


class HealthCheckServer:
    """HTTP status server exposing connection state and timer count"""

    def __init__(self, bot: TimerBot, host: str = "0.0.0.0", port: int = 3000):
        self.bot = bot
        self.host = host
        self.port = port
        self.app = web.Application()
        self.runner: web.AppRunner | None = None
        self._heartbeat_task: asyncio.Task | None = None
        self._setup_routes()

    def _setup_routes(self) -> None:
        """Configure HTTP routes"""
        self.app.router.add_get("/", self.handle_root)
        self.app.router.add_get("/health", self.handle_health)
        self.app.router.add_get("/status", self.handle_status)
        self.app.router.add_get("/ping", self.handle_ping)

    async def handle_root(self, request: web.Request) -> web.Response:
        """Human-readable status page"""
        connected = self.bot.connected
        page = _STATUS_PAGE.format(
            status_class="online" if connected else "offline",
            status_text="✅ Online" if connected else "❌ Offline",
            bot_username=html.escape(self.bot.bot_username or "Not configured"),
            channel=html.escape(self.bot.channel or "Not configured"),
            uptime_minutes=self.bot.uptime_seconds // 60,
            timers=self.bot.active_timer_count,
            permissions=html.escape(self.bot.permission_summary),
        )
        return web.Response(text=page, content_type="text/html")

    async def handle_health(self, request: web.Request) -> web.Response:
        """Liveness check — always 200"""
        return web.json_response(
            {
                "status": "ok",
                "connected": self.bot.connected,
                "uptime": self.bot.uptime_seconds,
                "timers": self.bot.active_timer_count,
            }
        )

    async def handle_status(self, request: web.Request) -> web.Response:
        """Detailed status for tooling"""
        return web.json_response(
            {
                "status": "ok",
                "connected": self.bot.connected,
                "uptime": self.bot.uptime_seconds,
                "timers": self.bot.active_timer_count,
                "service": "twitch-timer-bot",
                "connection_attempts": self.bot.supervisor.attempts,
                "bot_username": self.bot.bot_username,
                "channel": self.bot.channel,
                "permissions": self.bot.permission_summary,
            }
        )

    async def handle_ping(self, request: web.Request) -> web.Response:
        """Ping endpoint"""
        return web.Response(text="pong")

    async def _heartbeat(self) -> None:
        """Periodic heartbeat — log uptime and bot status"""
        while True:
            await asyncio.sleep(300)
            logger.info(
                f"Heartbeat: uptime={self.bot.uptime_seconds}s, "
                f"connected={self.bot.connected}, timers={self.bot.active_timer_count}"
            )

    async def start(self) -> None:
        """Start status server"""
        try:
            self.runner = web.AppRunner(self.app)
            await self.runner.setup()

            site = web.TCPSite(self.runner, self.host, self.port)
            await site.start()

            self._heartbeat_task = asyncio.create_task(self._heartbeat())

            logger.info(f"Web server listening on {self.host}:{self.port}")
            logger.info(f"  GET http://{self.host}:{self.port}/ - Status page")
            logger.info(f"  GET http://{self.host}:{self.port}/health - Health check")

        except Exception as e:
            logger.exception(f"Failed to start status server: {e}")
            raise

    async def stop(self) -> None:
        """Stop status server"""
        if self._heartbeat_task:
            self._heartbeat_task.cancel()
        if self.runner:
            try:
                await self.runner.cleanup()
                logger.info("Status server stopped")
            except Exception as e:
                logger.exception(f"Error stopping status server: {e}")

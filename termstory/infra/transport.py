from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass, field

import aiohttp

from termstory.api.models import OutboundMessage
from termstory.config import ConsoleSettings, ReconnectSettings
from termstory.core.lines import LineType
from termstory.session import ConsoleSession

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReconnectBackoff:
    """Fixed delay with symmetric jitter. There is no attempt limit."""

    settings: ReconnectSettings = field(default_factory=ReconnectSettings)
    rng: random.Random = field(default_factory=random.Random)

    def next_delay(self) -> float:
        jitter = max(0.0, self.settings.jitter)
        return max(0.0, self.settings.delay_s * (1 + self.rng.uniform(-jitter, jitter)))


class WebSocketTransport:
    """aiohttp websocket client feeding a `ConsoleSession`.

    Contract:
      - every text/binary frame is handed to `session.feed` as-is.
      - on close or failure the session is told, then we reconnect after the
        backoff, forever unless `run(attempts=...)` bounds it.
      - `send` drops messages while disconnected.
    """

    def __init__(
        self,
        session: ConsoleSession,
        settings: ConsoleSettings | None = None,
        *,
        backoff: ReconnectBackoff | None = None,
    ) -> None:
        self.session = session
        self.settings = settings or session.settings
        self.backoff = backoff or ReconnectBackoff(self.settings.reconnect)
        self._ws: aiohttp.ClientWebSocketResponse | None = None

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def send(self, message: OutboundMessage) -> None:
        ws = self._ws
        if ws is None or ws.closed:
            logger.debug("offline; dropping outbound %s", message.t)
            return
        await ws.send_str(message.model_dump_json())

    async def run(self, *, attempts: int | None = None) -> None:
        async with aiohttp.ClientSession() as http:
            attempt = 0
            while attempts is None or attempt < attempts:
                attempt += 1
                await self._connect_once(http)
                self.session.connection_lost()
                if attempts is not None and attempt >= attempts:
                    break
                delay = self.backoff.next_delay()
                logger.info("reconnecting to %s in %.2fs", self.settings.url, delay)
                await asyncio.sleep(delay)

    async def _connect_once(self, http: aiohttp.ClientSession) -> None:
        try:
            async with http.ws_connect(self.settings.url) as ws:
                self._ws = ws
                self.session.set_online(True)
                self.session.notice(f"connected to {self.settings.backend_name} backend", LineType.system)
                async for msg in ws:
                    if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                        self.session.feed(msg.data)
                    elif msg.type == aiohttp.WSMsgType.ERROR:
                        logger.warning("websocket error: %s", ws.exception())
                        self.session.notice("connection error", LineType.error)
                        break
        except (aiohttp.ClientError, OSError) as e:
            logger.warning("connection to %s failed: %s", self.settings.url, e)
            self.session.notice("connection error", LineType.error)
        finally:
            self._ws = None

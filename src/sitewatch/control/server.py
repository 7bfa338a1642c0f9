"""
Line based control server.

Clients send one command per line; each command is answered with one JSON
line: {"type": "log" | "err", "data": "<text>"}.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .commands import CommandHandler

logger = logging.getLogger(__name__)

DEFAULT_PORT = 3456


class ControlServer:
    """
    asyncio TCP server dispatching lines to a CommandHandler.

    Usage:
        server = ControlServer(handler, host="127.0.0.1", port=3456)
        await server.start()
        ...
        await server.stop()
    """

    def __init__(
        self,
        handler: CommandHandler,
        host: str = "127.0.0.1",
        port: int = DEFAULT_PORT,
    ) -> None:
        self._handler = handler
        self.host = host
        self.port = port
        self._server: Optional[asyncio.AbstractServer] = None

    @property
    def is_running(self) -> bool:
        return self._server is not None and self._server.is_serving()

    @property
    def bound_port(self) -> Optional[int]:
        """Actual listening port (useful when port=0)."""
        if self._server is None or not self._server.sockets:
            return None
        return self._server.sockets[0].getsockname()[1]

    async def start(self) -> None:
        if self._server is not None:
            logger.warning("Control server already running")
            return
        self._server = await asyncio.start_server(self._handle_client, self.host, self.port)
        logger.info(f"Control server listening on {self.host}:{self.bound_port}")

    async def stop(self) -> None:
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        logger.info("Control server stopped")

    async def _handle_client(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        peer = writer.get_extra_info("peername")
        logger.info(f"Client connected: {peer}")

        try:
            while True:
                raw = await reader.readline()
                if not raw:
                    break
                line = raw.decode("utf-8", errors="replace").strip()
                if not line:
                    continue

                reply = self._handler.handle(line)
                writer.write((reply.to_json() + "\n").encode("utf-8"))
                await writer.drain()

        except (ConnectionResetError, asyncio.IncompleteReadError) as e:
            logger.debug(f"Client {peer} connection lost: {e}")
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except ConnectionResetError:
                pass
            logger.info(f"Client disconnected: {peer}")

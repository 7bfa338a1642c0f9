"""
Interactive shell for the control server.

Usage:
    python -m sitewatch.shell [--host HOST] [--port PORT]

Type `help` for the list of commands; `exit`, `quit` or `q` leaves.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional, TextIO

from sitewatch.control import DEFAULT_PORT

logger = logging.getLogger(__name__)

EXIT_COMMANDS = ("exit", "quit", "q")
PROMPT = "sitewatch> "


def format_reply(raw: str) -> tuple:
    """
    Decode one reply line.

    Returns:
        (is_error, text)
    """
    try:
        reply = json.loads(raw)
    except json.JSONDecodeError:
        return True, f"invalid reply: {raw.strip()}"
    return reply.get("type") == "err", str(reply.get("data", ""))


class ControlClient:
    """
    Sends commands to a ControlServer and waits for each reply.

    Usage:
        client = ControlClient("127.0.0.1", 3456)
        await client.connect()
        is_error, text = await client.send("list")
        await client.close()
    """

    def __init__(self, host: str = "127.0.0.1", port: int = DEFAULT_PORT) -> None:
        self.host = host
        self.port = port
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None

    async def connect(self) -> None:
        self._reader, self._writer = await asyncio.open_connection(self.host, self.port)
        logger.debug(f"Connected to {self.host}:{self.port}")

    async def send(self, command: str) -> tuple:
        """
        Send one command.

        Raises:
            ConnectionError: If the server closed the connection
        """
        if self._writer is None or self._reader is None:
            raise ConnectionError("Not connected")

        self._writer.write((command.strip() + "\n").encode("utf-8"))
        await self._writer.drain()

        raw = await self._reader.readline()
        if not raw:
            raise ConnectionError("Connection closed by server")
        return format_reply(raw.decode("utf-8"))

    async def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
            try:
                await self._writer.wait_closed()
            except ConnectionResetError:
                pass
            self._writer = None
            self._reader = None


async def run_shell(
    client: ControlClient,
    stdin: TextIO = sys.stdin,
    stdout: TextIO = sys.stdout,
    stderr: TextIO = sys.stderr,
    prompt: str = PROMPT,
) -> int:
    """Read commands until EOF or an exit command."""
    loop = asyncio.get_running_loop()

    while True:
        stdout.write(prompt)
        stdout.flush()
        line = await loop.run_in_executor(None, stdin.readline)
        if not line:
            break

        command = line.strip()
        if not command:
            continue
        if command in EXIT_COMMANDS:
            break

        try:
            is_error, text = await client.send(command)
        except ConnectionError as e:
            print(f"Connection lost: {e}", file=stderr)
            return 1

        print(text, file=stderr if is_error else stdout)

    return 0


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="sitewatch control shell")
    parser.add_argument("--host", default="127.0.0.1", help="Control server host")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Control server port")
    return parser.parse_args()


async def main_async(args: argparse.Namespace) -> int:
    client = ControlClient(args.host, args.port)
    try:
        await client.connect()
    except OSError as e:
        print(f"Could not connect to {args.host}:{args.port}: {e}", file=sys.stderr)
        return 1

    try:
        return await run_shell(client)
    finally:
        await client.close()


def main() -> int:
    """Main entry point."""
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    try:
        return asyncio.run(main_async(parse_args()))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    raise SystemExit(main())

"""
Control Layer - Remote configuration of the running monitor.

This module provides:
    - CommandHandler: Parses and executes one command line
    - Reply: Result of a command ("log" or "err")
    - ControlServer: asyncio TCP server answering one JSON line per command
"""

from .commands import CommandHandler, Reply, help_text
from .server import DEFAULT_PORT, ControlServer

__all__ = [
    "CommandHandler",
    "Reply",
    "help_text",
    "ControlServer",
    "DEFAULT_PORT",
]

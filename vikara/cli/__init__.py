"""Vikara CLI.

Registers every command on the main group.
"""

from vikara.cli.auth import connect, logout, status
from vikara.cli.chat import chat
from vikara.cli.events import events
from vikara.cli.main import cli
from vikara.cli.serve import serve
from vikara.cli.talk import talk

__all__ = [
    "chat",
    "cli",
    "connect",
    "events",
    "logout",
    "serve",
    "status",
    "talk",
]

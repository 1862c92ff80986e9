"""
Command registry and argument parsing helpers shared by the CLI commands
"""

import argparse
from typing import Callable, List, NamedTuple, Sequence, Tuple

from .client import ControllerClient, ControllerSession
from .errors import InvalidCommand, UsageError

# Called by a command once its arguments are valid, performs the login
Connector = Callable[[], Tuple[ControllerClient, ControllerSession]]


class Command(NamedTuple):
    name: str
    description: str
    handler: Callable[[List[str], Connector], int]
    aliases: Tuple[str, ...] = ()


class CommandParser(argparse.ArgumentParser):
    """ArgumentParser that raises UsageError instead of exiting.

    Flags must be spelled in full, a prefix of a field flag is not accepted.
    """

    def __init__(self, *args, **kwargs):
        kwargs.setdefault("allow_abbrev", False)
        super().__init__(*args, **kwargs)

    def error(self, message):
        raise UsageError(message, self.format_help())


def dispatch(commands: Sequence[Command], args: List[str], connect: Connector, what: str = "command") -> int:
    """Run the command named by args[0] with the remaining arguments."""
    listing = [(cmd.name, cmd.description) for cmd in commands]

    if not args:
        raise InvalidCommand(f"no {what} specified", listing)

    name = args[0]
    for cmd in commands:
        if name == cmd.name or name in cmd.aliases:
            return cmd.handler(args[1:], connect)

    raise InvalidCommand(f"invalid {what} specified: {name}", listing)


def command_epilog(commands: Sequence[Command]) -> str:
    lines = [f"  {cmd.name}: {cmd.description}" for cmd in commands]
    return "commands:\n" + "\n".join(lines)

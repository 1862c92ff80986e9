"""
Ruckus DPSK manager command line entry point
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .backup import handle_backup
from .dpsk import handle_dpsk
from .utils.client import ControllerClient
from .utils.commands import Command, command_epilog, dispatch
from .utils.config import (
    DEFAULT_SERVER,
    DEFAULT_USERNAME,
    ENV_CACERT,
    ENV_PASSWORD,
    ENV_SERVER,
    ENV_TIMEOUT,
    ENV_USERNAME,
    ControllerConfig,
    load_config,
)
from .utils.errors import DpskManagerError, UsageError, ValidationError
from .utils.logger import ROOT_LOGGER, default_log_file, get_logger, setup_logging

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2

COMMANDS = [
    Command("dpsk", "Manage DPSKs", handle_dpsk),
    Command("backup", "Download a configuration backup", handle_backup, aliases=("config",)),
]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ruckus-dpsk-manager",
        description="Manage Dynamic PSKs on a Ruckus Unleashed controller through its web console",
        epilog=command_epilog(COMMANDS),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
    )
    parser.add_argument("--server", help=f"Controller location (env {ENV_SERVER}, default {DEFAULT_SERVER})")
    parser.add_argument("--username", help=f"Login username (env {ENV_USERNAME}, default {DEFAULT_USERNAME})")
    parser.add_argument("--password", help=f"Login password (env {ENV_PASSWORD}, required)")
    parser.add_argument("--cacert", help=f"Path to a custom CA certificate (env {ENV_CACERT})")
    parser.add_argument("--insecure", action="store_true", help="Skip TLS certificate verification")
    parser.add_argument("--timeout", type=float, help=f"Request timeout in seconds (env {ENV_TIMEOUT}, default 30)")
    parser.add_argument("--debug", action="store_true", help="Enable debug output")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("command", nargs="?", help="Command to run")
    parser.add_argument("args", nargs=argparse.REMAINDER, help="Command arguments")
    return parser


def make_connector(config: ControllerConfig):
    """Connector that logs in on first use and reuses the session afterwards."""
    state = {}

    def connect():
        if "session" not in state:
            client = ControllerClient(config)
            state["client"] = client
            state["session"] = client.login()
        return state["client"], state["session"]

    connect.state = state
    return connect


def run(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, run one command and return the exit status."""
    parser = build_parser()
    options = parser.parse_args(argv)

    log_file = Path(options.log_file) if options.log_file else default_log_file()
    setup_logging(ROOT_LOGGER, logging.DEBUG if options.debug else logging.INFO, log_file)

    connect = None
    try:
        config = load_config(
            server=options.server,
            username=options.username,
            password=options.password,
            cacert=options.cacert,
            insecure=options.insecure,
            timeout=options.timeout,
        )
        connect = make_connector(config)

        args = [options.command] + options.args if options.command else []
        return dispatch(COMMANDS, args, connect)

    except (UsageError, ValidationError) as e:
        print(f"Error: {e}", file=sys.stderr)
        if getattr(e, "usage", None):
            print(e.usage, file=sys.stderr)
        return EXIT_USAGE

    except DpskManagerError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    finally:
        if connect is not None and "client" in connect.state:
            connect.state["client"].close()


def main():
    """Main entry point for the CLI."""
    sys.exit(run())


if __name__ == "__main__":
    main()

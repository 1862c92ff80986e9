"""
Configuration backup download
"""

from pathlib import Path
from typing import List, Union

from .utils.client import ControllerClient, ControllerSession
from .utils.commands import CommandParser, Connector
from .utils.errors import UsageError
from .utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_OUTPUT = "file.bak"


def check_output(output: Union[str, Path]) -> Path:
    """
    Resolve the backup output path and make sure a file can go there.

    Raises:
        UsageError: the directory does not exist or the output is a directory
    """
    output = Path(output).expanduser()
    if not output.parent.is_dir():
        raise UsageError(f"output directory does not exist: {output.parent}")
    if output.is_dir():
        raise UsageError(f"output is a directory: {output}")
    return output


def save_backup(client: ControllerClient, session: ControllerSession, output: Union[str, Path]) -> int:
    """
    Download the controller's backup to output, byte for byte.

    Returns:
        Number of bytes written

    Raises:
        UsageError: the output path is unusable
        TransportError: the download failed
        OutputError: the file could not be written
    """
    output = check_output(output)

    logger.info(f"Saving backup to {output}")
    return client.download_backup(session, output)


def handle_backup(args: List[str], connect: Connector) -> int:
    parser = CommandParser(prog="backup", description="Download a configuration backup")
    parser.add_argument("--output", default=DEFAULT_OUTPUT,
                        help=f"Output file location (default {DEFAULT_OUTPUT})")
    options = parser.parse_args(args)

    try:
        output = check_output(options.output)
    except UsageError as e:
        raise e.with_usage(parser.format_help())

    client, session = connect()
    save_backup(client, session, output)
    return 0

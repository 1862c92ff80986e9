"""
Ruckus DPSK MCP Server
Exposes the list/create/modify/backup workflows as MCP tools
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, Optional

from mcp.server import Server
from mcp.types import Tool, TextContent
from pydantic import BaseModel, Field

from . import __version__
from .backup import DEFAULT_OUTPUT, save_backup
from .dpsk import (
    DEFAULT_PASSPHRASE_LENGTH,
    create_record,
    list_records,
    modify_records,
)
from .utils.client import ControllerClient
from .utils.config import load_config
from .utils.errors import DpskManagerError
from .utils.filters import build_filter_set, build_update_set
from .utils.logger import get_logger

logger = get_logger(__name__)

app = Server("ruckus-dpsk")


# ============================================================================
# Pydantic Argument Models
# ============================================================================

class ListDpskArgs(BaseModel):
    """Arguments for list_dpsk tool."""
    exact: Dict[str, str] = Field(
        default_factory=dict,
        description="Field identifier -> exact value, e.g. {\"wlansvc-id\": \"3\"}"
    )
    regexp: Dict[str, str] = Field(
        default_factory=dict,
        description="Field identifier -> regular expression, e.g. {\"user\": \"^guest-\"}"
    )


class CreateDpskArgs(BaseModel):
    """Arguments for create_dpsk tool."""
    wlansvc_id: int = Field(description="WLAN service ID the DPSK belongs to")
    user: str = Field(description="DPSK owner username")
    length: int = Field(
        default=DEFAULT_PASSPHRASE_LENGTH,
        description="Passphrase length for a new DPSK (8-62)"
    )


class ModifyDpskArgs(BaseModel):
    """Arguments for modify_dpsk tool."""
    exact: Dict[str, str] = Field(default_factory=dict, description="Exact filters selecting DPSKs")
    regexp: Dict[str, str] = Field(default_factory=dict, description="Regexp filters selecting DPSKs")
    values: Dict[str, str] = Field(description="Field identifier -> new value")


class BackupConfigArgs(BaseModel):
    """Arguments for backup_config tool."""
    output: str = Field(default=DEFAULT_OUTPUT, description="Local path for the backup file")


# ============================================================================
# Tool Registration
# ============================================================================

@app.list_tools()
async def list_tools() -> list[Tool]:
    """List available DPSK tools."""
    return [
        Tool(
            name="list_dpsk",
            description="List DPSK records matching exact and/or regexp field filters. At least one filter is required; a field cannot have both kinds.",
            inputSchema=ListDpskArgs.model_json_schema()
        ),
        Tool(
            name="create_dpsk",
            description="Return the DPSK passphrase for a user on a WLAN, creating the DPSK if it does not exist.",
            inputSchema=CreateDpskArgs.model_json_schema()
        ),
        Tool(
            name="modify_dpsk",
            description="Set field values on every DPSK matching the filters. Not transactional: a failure stops the batch and earlier updates stay applied.",
            inputSchema=ModifyDpskArgs.model_json_schema()
        ),
        Tool(
            name="backup_config",
            description="Download the controller configuration backup to a local file.",
            inputSchema=BackupConfigArgs.model_json_schema()
        ),
    ]


# ============================================================================
# Tool Handler
# ============================================================================

@app.call_tool()
async def call_tool(name: str, arguments: Any) -> list[TextContent]:
    """Handle tool invocations."""
    arguments = arguments or {}
    try:
        if name == "list_dpsk":
            args = ListDpskArgs(**arguments)
            result = await list_dpsk(args.exact, args.regexp)

        elif name == "create_dpsk":
            args = CreateDpskArgs(**arguments)
            result = await create_dpsk(args.wlansvc_id, args.user, args.length)

        elif name == "modify_dpsk":
            args = ModifyDpskArgs(**arguments)
            result = await modify_dpsk(args.exact, args.regexp, args.values)

        elif name == "backup_config":
            args = BackupConfigArgs(**arguments)
            result = await backup_config(args.output)

        else:
            result = {"status": "error", "error": f"Unknown tool: {name}"}

    except Exception as e:
        logger.error(f"Error in call_tool({name}): {e}", exc_info=True)
        result = _error(e)

    return [TextContent(type="text", text=json.dumps(result, indent=2))]


def _error(e: Exception) -> dict:
    return {"status": "error", "error_type": type(e).__name__, "error": str(e)}


def _connect(client: Optional[ControllerClient] = None):
    """Client and session for one tool call, configured from RUCKUS_* variables."""
    client = client or ControllerClient(load_config())
    return client, client.login()


# ============================================================================
# Tool Implementations
# ============================================================================

async def list_dpsk(
    exact: Dict[str, str],
    regexp: Dict[str, str],
    client: Optional[ControllerClient] = None,
) -> dict:
    """
    List DPSKs matching the filters.

    Returns:
        {"status": "success", "count": 1, "records": [...]}
    """
    try:
        filters = build_filter_set(exact, regexp)

        def work():
            c, session = _connect(client)
            try:
                return list_records(c.dpsk(session), filters)
            finally:
                if client is None:
                    c.close()

        records = await asyncio.to_thread(work)
        return {
            "status": "success",
            "count": len(records),
            "records": [record.to_dict() for record in records],
        }

    except DpskManagerError as e:
        logger.warning(f"list_dpsk failed: {e}")
        return _error(e)


async def create_dpsk(
    wlansvc_id: int,
    user: str,
    length: int = DEFAULT_PASSPHRASE_LENGTH,
    client: Optional[ControllerClient] = None,
) -> dict:
    """
    Get or create the DPSK for a user on a WLAN.

    Returns:
        {"status": "success", "created": true, "id": 7, "passphrase": "..."}
    """
    try:
        def work():
            c, session = _connect(client)
            try:
                return create_record(c.dpsk(session), wlansvc_id, user, length)
            finally:
                if client is None:
                    c.close()

        result = await asyncio.to_thread(work)
        return {
            "status": "success",
            "created": result.created,
            "id": result.record.id,
            "passphrase": result.passphrase,
        }

    except DpskManagerError as e:
        logger.warning(f"create_dpsk failed: {e}")
        return _error(e)


async def modify_dpsk(
    exact: Dict[str, str],
    regexp: Dict[str, str],
    values: Dict[str, str],
    client: Optional[ControllerClient] = None,
) -> dict:
    """
    Update every DPSK matching the filters.

    Returns:
        {"status": "success", "matched": 2, "updated": [1, 4]}
    """
    try:
        filters = build_filter_set(exact, regexp)
        updates = build_update_set(values)

        def work():
            c, session = _connect(client)
            try:
                return modify_records(c.dpsk(session), filters, updates)
            finally:
                if client is None:
                    c.close()

        result = await asyncio.to_thread(work)
        return {"status": "success", **result.summary()}

    except DpskManagerError as e:
        logger.warning(f"modify_dpsk failed: {e}")
        result = _error(e)
        updated = getattr(e, "updated_ids", None)
        if updated is not None:
            result["updated"] = updated
        return result


async def backup_config(output: str = DEFAULT_OUTPUT, client: Optional[ControllerClient] = None) -> dict:
    """
    Download the configuration backup.

    Returns:
        {"status": "success", "output": "/path/file.bak", "bytes": 12345}
    """
    try:
        path = Path(output).expanduser().resolve()

        def work():
            c, session = _connect(client)
            try:
                return save_backup(c, session, path)
            finally:
                if client is None:
                    c.close()

        written = await asyncio.to_thread(work)
        return {"status": "success", "output": str(path), "bytes": written}

    except DpskManagerError as e:
        logger.warning(f"backup_config failed: {e}")
        return _error(e)


# ============================================================================
# Main Entry Point
# ============================================================================

def main():
    """Main entry point for the DPSK MCP server."""
    import sys

    if len(sys.argv) > 1:
        if sys.argv[1] == "--version":
            print(f"ruckus-dpsk-mcp v{__version__}")
            return

    async def run_server():
        from mcp.server.stdio import stdio_server

        async with stdio_server() as (read_stream, write_stream):
            await app.run(
                read_stream,
                write_stream,
                app.create_initialization_options()
            )

    asyncio.run(run_server())


if __name__ == "__main__":
    main()

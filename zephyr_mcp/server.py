"""
Zephyr Scale MCP Server - Exposes the Zephyr Scale API via Model Context Protocol.

This server acts as a bridge between MCP clients and the Zephyr Scale REST API,
allowing AI assistants to work with test cases, test cycles, test executions,
folders, projects and reference data.

Supports two transport modes:
1. STDIO: For local integration with MCP clients (direct stdin/stdout communication)
2. SSE: For remote deployment via Server-Sent Events over HTTP/HTTPS
"""

import sys
import json
import signal
import asyncio
import logging
import argparse
from typing import Any, Dict, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.tools import Tool
from fastmcp.tools.tool import ToolResult
from starlette.applications import Starlette
from starlette.responses import JSONResponse
from starlette.routing import Mount, Route
import uvicorn

from . import __version__
from .config import MCP_SERVER_NAME, load_settings, setup_logging
from .errors import ConfigError, ZephyrError
from .tools import TOOLS, ToolDispatcher

logger = logging.getLogger(__name__)

# Initialize FastMCP server instance
mcp = FastMCP(MCP_SERVER_NAME)

# Built from the environment on first use, or installed by main()/tests
_dispatcher: Optional[ToolDispatcher] = None


def configure(dispatcher: Optional[ToolDispatcher]) -> None:
    """Install the dispatcher used by every tool (None resets it)."""
    global _dispatcher
    _dispatcher = dispatcher


def get_dispatcher() -> ToolDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = ToolDispatcher.from_settings(load_settings())
    return _dispatcher


def _dispatch(tool_name: str, arguments: Optional[Dict[str, Any]]) -> str:
    """
    Forward a tool call to the dispatcher and render the result.

    Successful results are returned as pretty-printed JSON text (plain
    confirmation messages pass through as-is). Classified errors are raised as
    ToolError with the structured error serialized as JSON, so the MCP client
    receives an error result carrying kind, code, message and details.
    """
    try:
        result = get_dispatcher().call(tool_name, arguments)
    except ZephyrError as e:
        raise ToolError(json.dumps(e.to_dict(), default=str)) from e
    except ConfigError as e:
        logger.critical(f"Server is not configured: {e}")
        raise ToolError(json.dumps({
            "status": "failed",
            "error_type": "INTERNAL_ERROR",
            "code": e.code,
            "error": str(e),
            "details": {},
        })) from e

    if isinstance(result, str):
        return result
    return json.dumps(result, indent=2, default=str)


# ============================================================================
# TOOL REGISTRATION
# ============================================================================
# Every catalog entry is published with its declared input schema. Arguments
# reach the dispatcher untouched, so its validation is the only one that runs
# and failures come back as structured VALIDATION_ERROR results.

class CatalogTool(Tool):
    """FastMCP tool backed by one catalog entry."""

    async def run(self, arguments: Dict[str, Any]) -> ToolResult:
        # The Zephyr client is blocking; keep it off the event loop
        text = await asyncio.to_thread(_dispatch, self.name, arguments)
        return ToolResult(content=text)


for spec in TOOLS:
    mcp.add_tool(CatalogTool(
        name=spec.name,
        description=spec.description,
        parameters=spec.input_schema,
    ))


# ============================================================================
# MCP RESOURCES
# ============================================================================
# Static reference information, accessible via the zephyr:// URI scheme.

@mcp.resource("zephyr://config/settings")
def get_server_config() -> str:
    """Server configuration"""
    dispatcher = get_dispatcher()
    return json.dumps({
        "api_base_url": dispatcher.client.base_url,
        "version": __version__,
        "auth": "Bearer token from ZEPHYR_API_KEY",
        "tools": len(TOOLS),
    }, indent=2)


@mcp.resource("zephyr://docs/api-endpoints")
def get_api_endpoints() -> str:
    """API endpoints reference"""
    return json.dumps({
        "testcases": ["GET /testcases", "GET /testcases/{key}", "POST /testcases", "PUT /testcases/{key}",
                      "GET /testcases/{key}/links", "POST /testcases/{key}/links/issues",
                      "POST /testcases/{key}/links/weblinks", "GET|POST /testcases/{key}/testscript",
                      "GET|POST /testcases/{key}/teststeps"],
        "testcycles": ["GET /testcycles", "GET /testcycles/{idOrKey}", "POST /testcycles",
                       "PUT /testcycles/{idOrKey}"],
        "testexecutions": ["GET /testexecutions", "GET /testexecutions/{idOrKey}", "POST /testexecutions",
                           "PUT /testexecutions/{idOrKey}", "GET|PUT /testexecutions/{idOrKey}/teststeps"],
        "projects": ["GET /projects", "GET /projects/{idOrKey}"],
        "folders": ["GET /folders", "GET /folders/{id}", "POST /folders"],
        "reference": ["GET /statuses", "GET /priorities", "GET /environments"],
        "links": ["DELETE /links/{id}"],
    }, indent=2)


# ============================================================================
# SSE TRANSPORT
# ============================================================================

async def health_check(request):
    """Health check endpoint for load balancers and manual testing."""
    return JSONResponse({
        "status": "ok",
        "service": "Zephyr Scale MCP Server",
        "version": __version__,
        "endpoints": {
            "health": "/",
            "sse": "/sse"
        }
    })


def create_sse_app() -> Starlette:
    """Starlette app serving the health check at / and the MCP SSE endpoint."""
    return Starlette(
        routes=[
            Route("/", health_check),
            Mount("/", app=mcp.http_app(transport="sse")),
        ]
    )


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

def _handle_sigterm(signum, frame):
    # Shut down along the same path as Ctrl+C
    raise KeyboardInterrupt


def main(argv=None) -> int:
    """
    Run the MCP server with either STDIO or SSE transport.

    Returns:
        int: Process exit status (0 on clean shutdown, 1 on startup failure)
    """
    parser = argparse.ArgumentParser(description='Zephyr Scale MCP Server')
    parser.add_argument('--transport', choices=['stdio', 'sse'], default='stdio',
                        help='Transport type: stdio (local) or sse (remote)')
    parser.add_argument('--host', default='0.0.0.0',
                        help='Host to bind to for SSE (default: 0.0.0.0)')
    parser.add_argument('--port', type=int, default=8000,
                        help='Port to bind to for SSE (default: 8000)')
    args = parser.parse_args(argv)

    setup_logging()

    # Missing credentials are fatal: the server does not start
    try:
        settings = load_settings()
    except ConfigError as e:
        logger.critical(str(e))
        print(f"Zephyr MCP Server failed to start: {e}", file=sys.stderr)
        return 1

    configure(ToolDispatcher.from_settings(settings))

    logger.info("=" * 60)
    logger.info("Zephyr Scale MCP Server Starting")
    logger.info(f"MCP Server: {MCP_SERVER_NAME}")
    logger.info(f"API Base URL: {settings.base_url}")
    logger.info(f"Transport Mode: {args.transport}")
    logger.info("=" * 60)

    signal.signal(signal.SIGTERM, _handle_sigterm)

    try:
        if args.transport == 'sse':
            logger.info(f"Starting SSE server on {args.host}:{args.port}")
            uvicorn.run(create_sse_app(), host=args.host, port=args.port, log_level="info")
        else:
            # Blocks until the MCP client closes the connection
            logger.info("Starting STDIO server (stdin/stdout communication)")
            mcp.run(transport='stdio')
    except KeyboardInterrupt:
        logger.info("Server stopped by signal")
    except Exception as e:
        logger.critical(f"Server failed: {e}", exc_info=True)
        return 1

    return 0


def run():
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()

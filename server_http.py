import os
import logging
from typing import Any, Awaitable, Callable, Dict
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse
from starlette.routing import Route
from starlette.middleware.cors import CORSMiddleware
import uvicorn

from radiofm_core import RadioFMError, env_choice, search_radio_core

PORT = int(os.getenv("PORT", "3000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
METHOD_SURFACES = ("standard", "legacy", "both")
MCP_METHOD_SURFACE = env_choice("MCP_METHOD_SURFACE", "standard", METHOD_SURFACES)

PROTOCOL_VERSION = "2024-11-05"
SERVER_INFO = {"name": "radiofm-mcp-server", "version": "1.0.0"}
RPC_ERROR_CODE = -32000
DEFAULT_ERROR_MESSAGE = "Internal server error"
TOOL_NAME = "search_radio_stations"

logger = logging.getLogger(__name__)

class RPCError(Exception):
    """A request we refuse to serve; rendered as a JSON-RPC error."""

class UnknownMethod(RPCError):
    pass

class UnknownTool(RPCError):
    pass

class InvalidParams(RPCError):
    pass

def rpc_ok(_id: Any, result: Dict[str, Any]) -> JSONResponse:
    return JSONResponse({"jsonrpc": "2.0", "id": _id, "result": result})

def rpc_err(_id: Any, code: int, msg: str, status: int = 200) -> JSONResponse:
    return JSONResponse(
        {"jsonrpc": "2.0", "id": _id, "error": {"code": code, "message": msg}},
        status_code=status,
    )

SEARCH_SCHEMA = {
    "type": "object",
    "properties": {
        "query": {
            "type": "string",
            "description": 'Search query (e.g., "BBC", "India", "Hindi", "Jazz")',
        }
    },
    "required": ["query"],
}

TOOLS = [
    {
        "name": TOOL_NAME,
        "description": "Search for radio stations and podcasts worldwide by name, location, language, or genre",
        "inputSchema": SEARCH_SCHEMA,
    },
]

MCP_DESCRIPTOR = {
    "name": SERVER_INFO["name"],
    "version": SERVER_INFO["version"],
    "description": "Search Radio FM stations and podcasts over MCP",
    "protocol": "MCP",
    "protocolVersion": PROTOCOL_VERSION,
    "transport": "http",
    "endpoint": "/mcp",
    "tools": TOOLS,
}

# ---- Method handlers ---------------------------------------------------------

async def handle_initialize(params: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "protocolVersion": PROTOCOL_VERSION,
        "capabilities": {"tools": {}},
        "serverInfo": SERVER_INFO,
    }

async def handle_tools_list(params: Dict[str, Any]) -> Dict[str, Any]:
    return {"tools": TOOLS}

async def handle_tools_call(params: Dict[str, Any]) -> Dict[str, Any]:
    name, args = params.get("name"), params.get("arguments") or {}
    if name != TOOL_NAME:
        raise UnknownTool(f"Unknown tool: {name}")
    query = args.get("query") if isinstance(args, dict) else None
    if not isinstance(query, str) or not query:
        raise InvalidParams("Search query is required")
    text = await search_radio_core(query)
    return {"content": [{"type": "text", "text": text}]}

Handler = Callable[[Dict[str, Any]], Awaitable[Dict[str, Any]]]

STANDARD_METHODS: Dict[str, Handler] = {
    "initialize": handle_initialize,
    "tools/list": handle_tools_list,
    "tools/call": handle_tools_call,
}
LEGACY_METHODS: Dict[str, Handler] = {
    "initialize": handle_initialize,
    "list_tools": handle_tools_list,
    "call_tool": handle_tools_call,
}

def method_table(surface: str) -> Dict[str, Handler]:
    if surface == "standard":
        return dict(STANDARD_METHODS)
    if surface == "legacy":
        return dict(LEGACY_METHODS)
    if surface == "both":
        return {**STANDARD_METHODS, **LEGACY_METHODS}
    raise ValueError(f"Unknown method surface: {surface!r}")

# ---- Routes ------------------------------------------------------------------

async def health(_):
    return JSONResponse({
        "status": "Radio FM MCP Server is running",
        "version": SERVER_INFO["version"],
        "protocol": "MCP",
    })

async def mcp_descriptor(_):
    return JSONResponse(MCP_DESCRIPTOR)

async def health_mcp(_):
    return JSONResponse({"ok": True, "mcp": True})

async def options_mcp(_):
    return PlainTextResponse("", status_code=204)

async def mcp_endpoint(request: Request):
    try:
        body = await request.json()
    except ValueError:
        logger.warning("MCP request with unparseable JSON body")
        return rpc_err(None, RPC_ERROR_CODE, "Invalid JSON body")
    if not isinstance(body, dict):
        logger.warning("MCP request body is not a JSON object")
        return rpc_err(None, RPC_ERROR_CODE, "Request body must be a JSON object")

    _id, method = body.get("id"), body.get("method")
    params = body.get("params") or {}
    if not isinstance(params, dict):
        params = {}
    methods: Dict[str, Handler] = request.app.state.methods

    try:
        handler = methods.get(method) if isinstance(method, str) else None
        if handler is None:
            raise UnknownMethod(f"Unknown method: {method}")
        result = await handler(params)
    except (RPCError, RadioFMError) as e:
        logger.warning("MCP error (%s): %s", method, e)
        return rpc_err(_id, RPC_ERROR_CODE, str(e) or DEFAULT_ERROR_MESSAGE)
    except Exception as e:
        logger.exception("MCP error (%s)", method)
        return rpc_err(_id, RPC_ERROR_CODE, str(e) or DEFAULT_ERROR_MESSAGE)
    return rpc_ok(_id, result)

def create_app(method_surface: str = MCP_METHOD_SURFACE) -> Starlette:
    app = Starlette(
        debug=False,
        routes=[
            Route("/", health, methods=["GET"]),
            Route("/mcp.json", mcp_descriptor, methods=["GET"]),
            Route("/mcp", mcp_endpoint, methods=["POST"]),
            Route("/mcp", health_mcp, methods=["GET", "HEAD"]),
            Route("/mcp", options_mcp, methods=["OPTIONS"]),
        ],
    )
    app.state.methods = method_table(method_surface)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    return app

app = create_app()

if __name__ == "__main__":
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logger.info("Radio FM MCP Server running on http://localhost:%d", PORT)
    logger.info("MCP endpoint: http://localhost:%d/mcp (methods: %s)", PORT, ", ".join(app.state.methods))
    uvicorn.run(app, host="0.0.0.0", port=PORT)

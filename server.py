# server.py
# pip install mcp httpx
from mcp.server.fastmcp import FastMCP
from radiofm_core import search_radio_core

mcp = FastMCP("radiofm-mcp-server")

@mcp.tool()
async def search_radio_stations(query: str) -> str:
    """Search for radio stations and podcasts worldwide by name, location, language, or genre."""
    if not query:
        raise ValueError("Search query is required")
    return await search_radio_core(query)

if __name__ == "__main__":
    mcp.run()  # serves MCP over stdio

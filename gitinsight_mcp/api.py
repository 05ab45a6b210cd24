"""
GitInsight MCP Server - Combined MCP (SSE transport) + REST API

MCP Protocol endpoints (for any MCP client):
    GET  /mcp/sse        - SSE connection endpoint
    POST /mcp/messages   - MCP message handler

REST API endpoints:
    GET  /health
    GET  /api/tools
    POST /api/tools/{name}            - JSON body = tool arguments
    GET  /api/repositories
    GET  /api/repositories/{name}
    GET  /api/commits
    GET  /api/stats
    GET  /api/activity
    GET  /api/skills
    GET  /api/portfolio
    GET  /api/rate-limit

Every endpoint answers with the tool result envelope.
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Body, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from mcp.server.fastmcp import FastMCP
from mcp.server.sse import SseServerTransport
from starlette.requests import Request
from starlette.routing import Route

from .server import GitInsightRuntime

logger = logging.getLogger(__name__)

# Failure category -> HTTP status
ERROR_STATUS = {
    "validation": 400,
    "not_found": 404,
    "rate_limit": 429,
    "authentication": 502,
    "api_error": 502,
    "transport": 504,
}


def envelope_response(envelope: Dict[str, Any]) -> JSONResponse:
    if envelope["success"]:
        return JSONResponse(envelope)
    category = envelope["error"].get("details", {}).get("category", "internal")
    return JSONResponse(envelope, status_code=ERROR_STATUS.get(category, 500))


def create_app(runtime: GitInsightRuntime, mcp: FastMCP) -> FastAPI:
    """Build the FastAPI app serving REST endpoints and the MCP SSE transport."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with runtime.session():
            yield
        await runtime.aclose()

    app = FastAPI(
        title="GitInsight MCP Server",
        description="MCP server (SSE transport) + REST API for a GitHub developer profile",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---------------------------------------------------------------------------
    # MCP SSE Transport
    # ---------------------------------------------------------------------------
    sse_transport = SseServerTransport("/mcp/messages/")

    async def handle_mcp_sse(request: Request):
        """Accept an MCP client connection over SSE."""
        async with sse_transport.connect_sse(
            request.scope, request.receive, request._send
        ) as (read_stream, write_stream):
            await mcp._mcp_server.run(
                read_stream,
                write_stream,
                mcp._mcp_server.create_initialization_options(),
            )

    app.router.routes.insert(0, Route("/mcp/sse", endpoint=handle_mcp_sse))
    app.mount("/mcp/messages/", app=sse_transport.handle_post_message)

    dispatch = runtime.dispatcher.dispatch

    # ---------------------------------------------------------------------------
    # Health
    # ---------------------------------------------------------------------------
    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "service": "gitinsight-mcp",
            "github_user": runtime.settings.github_username,
            "mcp_sse_endpoint": "/mcp/sse",
            "cache": runtime.cache.stats(),
            "cache_sweeper_running": runtime.cache.sweeper_running,
        }

    # ---------------------------------------------------------------------------
    # Generic tool endpoint
    # ---------------------------------------------------------------------------
    @app.get("/api/tools")
    def api_tools():
        return {"tools": runtime.dispatcher.tool_names}

    @app.post("/api/tools/{name}")
    async def api_call_tool(name: str, arguments: Optional[Dict[str, Any]] = Body(default=None)):
        """Run any tool with a JSON argument object."""
        if not runtime.dispatcher.has_tool(name):
            return JSONResponse({"detail": f"Unknown tool: {name}"}, status_code=404)
        return envelope_response(await dispatch(name, arguments or {}))

    # ---------------------------------------------------------------------------
    # REST Endpoints
    # ---------------------------------------------------------------------------
    @app.get("/api/repositories")
    async def api_repositories(
        sort_by: Optional[str] = Query(None, pattern="^(stars|forks|updated|name)$"),
        limit: Optional[int] = Query(None, ge=1),
        use_cache: bool = Query(True),
    ):
        return envelope_response(await dispatch("list_repositories", {
            "sort_by": sort_by, "limit": limit, "use_cache": use_cache,
        }))

    @app.get("/api/repositories/{name}")
    async def api_repository(name: str, include_readme: bool = Query(False), use_cache: bool = Query(True)):
        return envelope_response(await dispatch("get_repository_details", {
            "repository_name": name, "include_readme": include_readme, "use_cache": use_cache,
        }))

    @app.get("/api/commits")
    async def api_commits(
        repository_name: Optional[str] = Query(None),
        limit: int = Query(50, ge=1, le=100),
        use_cache: bool = Query(True),
    ):
        return envelope_response(await dispatch("get_recent_commits", {
            "repository_name": repository_name, "limit": limit, "use_cache": use_cache,
        }))

    @app.get("/api/stats")
    async def api_stats(use_cache: bool = Query(True)):
        return envelope_response(await dispatch("get_repository_stats", {"use_cache": use_cache}))

    @app.get("/api/activity")
    async def api_activity(use_cache: bool = Query(True)):
        return envelope_response(await dispatch("get_contribution_activity", {"use_cache": use_cache}))

    @app.get("/api/skills")
    async def api_skills(use_cache: bool = Query(True)):
        return envelope_response(await dispatch("get_skills_matrix", {"use_cache": use_cache}))

    @app.get("/api/portfolio")
    async def api_portfolio(use_cache: bool = Query(True)):
        return envelope_response(await dispatch("generate_portfolio_summary", {"use_cache": use_cache}))

    @app.get("/api/rate-limit")
    async def api_rate_limit():
        return envelope_response(await dispatch("get_rate_limit", {}))

    return app

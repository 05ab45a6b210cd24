"""Entry-point for the GitInsight MCP Server."""
import argparse
import logging
import sys

import uvicorn

from .config import load_settings
from .errors import ConfigurationError
from .logger import log_banner, setup_logging
from .server import GitInsightRuntime, create_server

logger = logging.getLogger(__name__)


def _banner(runtime: GitInsightRuntime, mode: str) -> None:
    settings = runtime.settings
    log_banner(logger, f"GitInsight MCP Server - Starting ({mode})", {
        "GitHub User": settings.github_username,
        "Cache TTL": f"{settings.cache_ttl_seconds} seconds",
        "Tools Available": len(runtime.dispatcher.tool_names),
    })


def _run_mcp_stdio(runtime: GitInsightRuntime):
    mcp = create_server(runtime)
    mcp.run(transport="stdio")


def _run_mcp_sse(runtime: GitInsightRuntime):
    mcp = create_server(runtime)
    mcp.settings.host = runtime.settings.mcp_server_host
    mcp.settings.port = runtime.settings.mcp_server_port
    logging.info(
        "Starting MCP SSE server on %s:%s",
        runtime.settings.mcp_server_host, runtime.settings.mcp_server_port,
    )
    mcp.run(transport="sse")


def _run_rest_api(runtime: GitInsightRuntime):
    """Start the REST API bridge (passes the app object directly)."""
    from .api import create_app

    app = create_app(runtime, create_server(runtime))
    logging.info(
        "Starting REST API on %s:%s",
        runtime.settings.mcp_server_host, runtime.settings.mcp_server_port,
    )
    uvicorn.run(
        app,
        host=runtime.settings.mcp_server_host,
        port=runtime.settings.mcp_server_port,
        log_level="info",
    )


def main(argv=None):
    parser = argparse.ArgumentParser(description="GitInsight MCP Server")
    parser.add_argument(
        "--mode",
        choices=["mcp-stdio", "mcp-sse", "rest"],
        default="mcp-stdio",
        help="mcp-stdio | mcp-sse | rest (REST API + MCP over SSE)",
    )
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")
    args = parser.parse_args(argv)

    try:
        settings = load_settings()
    except ConfigurationError as exc:
        print(f"Configuration error: {exc.message}", file=sys.stderr)
        return 1

    setup_logging(settings.log_level, log_file=args.log_file)
    runtime = GitInsightRuntime(settings)
    _banner(runtime, args.mode)

    if args.mode == "mcp-stdio":
        _run_mcp_stdio(runtime)
    elif args.mode == "mcp-sse":
        _run_mcp_sse(runtime)
    elif args.mode == "rest":
        _run_rest_api(runtime)
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""
Logging for the GitInsight MCP Server.

Everything goes to stderr. Under the stdio transport stdout carries the MCP
protocol stream, so a single log line there corrupts the session.
"""
import logging
import sys
import time
from datetime import datetime
from typing import Any, Mapping, Optional, TextIO

RESET = "\033[0m"
DIM = "\033[2m"
TAG_COLOR = "\033[94m"

# level -> (color, three-letter label)
LEVEL_STYLES = {
    logging.DEBUG: ("\033[2m", "DBG"),
    logging.INFO: ("\033[96m", "INF"),
    logging.WARNING: ("\033[93m", "WRN"),
    logging.ERROR: ("\033[91m", "ERR"),
    logging.CRITICAL: ("\033[1;91m", "CRT"),
}

# Last segment of the logger name -> tag shown on each line
COMPONENT_TAGS = {
    "cache": "Cache",
    "github_client": "GitHub",
    "fetcher": "Fetcher",
    "tools": "Tool",
    "server": "MCP",
    "api": "REST",
    "__main__": "Main",
}

QUIET_LOGGERS = ("httpx", "httpcore", "apscheduler", "uvicorn.access")


def component_tag(logger_name: str) -> str:
    module = logger_name.rsplit(".", 1)[-1] if logger_name else "root"
    return COMPONENT_TAGS.get(module, module)


class GitInsightFormatter(logging.Formatter):
    """``HH:MM:SS | LVL | [Tag]      | message``, colored only on a terminal."""

    def __init__(self, stream: Optional[TextIO] = None, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and stream is not None and stream.isatty()

    def format(self, record: logging.LogRecord) -> str:
        color, level = LEVEL_STYLES.get(record.levelno, ("", record.levelname[:3]))
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tag = f"[{component_tag(record.name)}]"

        if self.use_colors:
            line = (
                f"{DIM}{clock}{RESET} | {color}{level}{RESET} | "
                f"{TAG_COLOR}{tag:10}{RESET} | {record.getMessage()}"
            )
        else:
            line = f"{clock} | {level} | {tag:10} | {record.getMessage()}"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: str = "INFO", log_file: Optional[str] = None, use_colors: bool = True) -> None:
    """
    Configure the root logger for the server process.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL. Unknown names fall back to INFO.
        log_file: Also append plain (uncolored) lines to this file.
        use_colors: Color the stderr output when stderr is a terminal.
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(GitInsightFormatter(sys.stderr, use_colors))
    handlers = [console]
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(GitInsightFormatter(use_colors=False))
        handlers.append(file_handler)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(numeric_level)
    for handler in handlers:
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_banner(logger: logging.Logger, title: str, details: Mapping[str, Any]) -> None:
    """Startup block: a title followed by one ``key: value`` line per entry."""
    rule = "=" * 60
    logger.info(rule)
    logger.info(title)
    for key, value in details.items():
        logger.info(f"  {key}: {value}")
    logger.info(rule)


def log_tool_result(logger: logging.Logger, tool_name: str, started: float, success: bool) -> None:
    """One line per finished tool call. ``started`` is a ``time.perf_counter()`` reading."""
    elapsed_ms = (time.perf_counter() - started) * 1000
    if success:
        logger.info(f"{tool_name} completed in {elapsed_ms:.0f}ms")
    else:
        logger.warning(f"{tool_name} failed after {elapsed_ms:.0f}ms")

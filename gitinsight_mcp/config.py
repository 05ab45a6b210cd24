"""Configuration for the GitInsight MCP Server."""
import logging
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# .env lives in the project root (one level above gitinsight_mcp/).
# Uses Path(__file__) so it works regardless of cwd.
# ---------------------------------------------------------------------------
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"

REQUIRED_SETTINGS = ("github_token", "github_username")


class GitInsightSettings(BaseSettings):
    """Settings for the GitInsight MCP Server."""

    github_token: str = Field(default="")
    github_username: str = Field(default="")
    github_api_base_url: str = Field(default="https://api.github.com")

    cache_ttl_seconds: int = Field(default=3600, ge=1)
    cache_check_period_seconds: int = Field(default=600, ge=1)

    # Repositories inspected when commits are gathered across the whole profile.
    commit_fanout_repositories: int = Field(default=10, ge=1)
    commits_per_repository: int = Field(default=5, ge=1)

    profile_name: str = Field(default="")
    profile_title: str = Field(default="Software Developer")
    profile_location: str = Field(default="")
    profile_email: str = Field(default="")
    profile_portfolio_url: str = Field(default="")
    pinned_projects: str = Field(
        default="",
        description="Comma-separated repository names always featured first in the portfolio",
    )

    mcp_server_host: str = Field(default="0.0.0.0")
    mcp_server_port: int = Field(default=3003)
    log_level: str = Field(default="INFO")

    class Config:
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @property
    def pinned_project_names(self) -> List[str]:
        return [name.strip() for name in self.pinned_projects.split(",") if name.strip()]

    @property
    def github_profile_url(self) -> str:
        return f"https://github.com/{self.github_username}"

    def missing_required(self) -> List[str]:
        return [name.upper() for name in REQUIRED_SETTINGS if not getattr(self, name)]


def load_settings(env_file: Optional[Path] = _ENV_FILE) -> GitInsightSettings:
    """
    Load settings from the environment (and an optional .env file) and
    validate them.

    Raises:
        ConfigurationError: if GITHUB_TOKEN or GITHUB_USERNAME is missing,
            or a numeric setting cannot be parsed.
    """
    if env_file is not None and env_file.exists():
        load_dotenv(env_file, override=False)

    try:
        settings = GitInsightSettings()
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc

    missing = settings.missing_required()
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)}. "
            "Please create a .env file based on .env.example"
        )

    logger.debug("Loaded settings for GitHub user %s", settings.github_username)
    return settings

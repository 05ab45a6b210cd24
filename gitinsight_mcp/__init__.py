"""
GitInsight MCP Server - exposes a developer's GitHub profile (repositories,
commits, statistics, skills) to AI assistants over the Model Context Protocol,
with an in-memory TTL cache in front of the GitHub API and a REST bridge.
"""

__version__ = "1.0.0"

# src/pack_review/services/__init__.py
"""Business logic services for the Pack Review application."""

from .content_store import ContentStore
from .git_gateway import GitForkGateway, GitHubForkGateway
from .mod_ingestor import ModArtifactIngestor
from .poll_resolver import PollResolver

__all__ = [
    "ContentStore",
    "GitForkGateway",
    "GitHubForkGateway",
    "ModArtifactIngestor",
    "PollResolver",
]

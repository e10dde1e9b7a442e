"""SQLAlchemy models for the Pack Review application."""

from .contribution import (
    Contribution,
    Poll,
    Resolution,
    Status,
    contribution_co_author,
    poll_downvote,
    poll_upvote,
)
from .fork_job import FORK_JOB_FAILED, FORK_JOB_PENDING, FORK_JOB_READY, ForkJob
from .texture import LinkedTexture, Mod, ModVersion, Texture
from .user import User, UserRole

__all__ = [
    "Contribution", "Poll", "Resolution", "Status",
    "contribution_co_author", "poll_downvote", "poll_upvote",
    "FORK_JOB_FAILED", "FORK_JOB_PENDING", "FORK_JOB_READY", "ForkJob",
    "LinkedTexture", "Mod", "ModVersion", "Texture",
    "User", "UserRole",
]

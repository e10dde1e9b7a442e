# src/pack_review/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import (
    contributions_router,
    council_router,
    fork_router,
    mods_router,
    polls_router,
    textures_router,
)

__all__ = [
    "contributions_router",
    "council_router",
    "fork_router",
    "mods_router",
    "polls_router",
    "textures_router",
]

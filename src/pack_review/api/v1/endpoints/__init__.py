# src/pack_review/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .contributions import router as contributions_router
from .council import router as council_router
from .fork import router as fork_router
from .mods import router as mods_router
from .polls import router as polls_router
from .textures import router as textures_router

__all__ = [
    "contributions_router",
    "council_router",
    "fork_router",
    "mods_router",
    "polls_router",
    "textures_router",
]

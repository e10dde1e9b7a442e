"""Pack Review: contribution review pipeline for texture packs."""

__version__ = "0.1.0"

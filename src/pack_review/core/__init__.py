"""Core configuration, errors and shared primitives."""

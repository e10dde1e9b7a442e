"""HTTP API for the Pack Review service."""

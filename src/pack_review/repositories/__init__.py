"""Data access for contributions."""

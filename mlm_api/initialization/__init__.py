"""API initialization helpers."""

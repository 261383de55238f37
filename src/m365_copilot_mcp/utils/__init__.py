"""Shared utilities for m365-copilot-mcp."""

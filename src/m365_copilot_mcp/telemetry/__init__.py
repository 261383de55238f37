"""Operational logging for m365-copilot-mcp."""

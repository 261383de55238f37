"""Allow running as ``python -m m365_copilot_mcp``."""

from m365_copilot_mcp.cli import main

if __name__ == "__main__":
    main()

"""System logger for operational events.

Import directly from the submodule:
    from m365_copilot_mcp.telemetry.system.system_logger import get_system_logger
"""

__all__: list[str] = []

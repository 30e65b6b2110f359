"""Restorepoint API endpoint paths, relative to ``AppConfig.api_base_url``."""

from urllib.parse import quote

DEVICES = "/devices"
BACKUPS = "/backups"
BACKUP_EXECUTE = "/backups/execute"
COMMANDS = "/commands"
COMMAND_EXECUTE = "/commands/execute"
SYSTEM_STATUS = "/system/status"

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 1000


def device_by_id(device_id: str) -> str:
    """Return the path of a single device."""
    return f"{DEVICES}/{quote(device_id, safe='')}"


def backup_by_id(backup_id: str) -> str:
    """Return the path of a single backup."""
    return f"{BACKUPS}/{quote(backup_id, safe='')}"


def command_by_id(command_id: str) -> str:
    """Return the path of a single command run."""
    return f"{COMMANDS}/{quote(command_id, safe='')}"


__all__ = [
    "BACKUPS",
    "BACKUP_EXECUTE",
    "COMMANDS",
    "COMMAND_EXECUTE",
    "DEFAULT_PAGE_SIZE",
    "DEVICES",
    "MAX_PAGE_SIZE",
    "SYSTEM_STATUS",
    "backup_by_id",
    "command_by_id",
    "device_by_id",
]

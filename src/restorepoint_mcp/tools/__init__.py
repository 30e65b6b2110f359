"""Tools package for MCP server.

Contains MCP tool registration modules:
- ``devices``: List, inspect, create, update and delete managed devices
- ``backups``: List, inspect and start configuration backups
- ``commands``: List, inspect and execute device commands
- ``tasks``: Poll, list, cancel and delete tracked tasks
- ``system``: Connectivity check
- ``common``: Shared utilities for tool registration
"""

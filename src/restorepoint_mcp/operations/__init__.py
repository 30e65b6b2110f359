"""Operations package for the Restorepoint MCP server.

Contains the request logic behind the MCP tools:
- ``devices``: List, inspect, create, update and delete managed devices
- ``backups``: List, inspect and start configuration backups
- ``commands``: List, inspect and execute device commands
- ``common``: Pagination, query and response-unwrapping helpers
"""

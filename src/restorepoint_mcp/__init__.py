"""Restorepoint MCP Server package.

This package contains the FastMCP server, the resilient API client and the
async task tracker used to operate a Restorepoint device-management
deployment.
"""

# Intentionally do not re-export symbols from submodules to avoid importing
# heavy dependencies and triggering environment validation at package import
# time. Individual modules (e.g., ``server``) should be imported directly by
# consumers as needed.

__all__: list[str] = []

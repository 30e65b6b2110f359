"""Client package for the Restorepoint MCP server.

Provides HTTP access and resilience primitives for the Restorepoint API:
- ``api_client``: Authenticated HTTP client with retry, 401 refresh and circuit breaking
- ``token_manager``: Token lifecycle management with scheduled refresh
- ``resilience``: Retry with exponential backoff and the circuit breaker
- ``responses``: Normalization of response bodies into one envelope
"""

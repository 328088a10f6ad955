"""FreshBooks MCP Server.

MCP server exposing FreshBooks OAuth 2.0 authentication and credential
management to MCP clients.
"""

__version__ = "0.1.0"

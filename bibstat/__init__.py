"""
Bibstat MCP Server - KB:s öppna biblioteksstatistik via Model Context Protocol.
"""

__version__ = "2.0.0"

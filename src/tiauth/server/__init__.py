"""tiauth HTTP server.

Usage:
    # Start the server
    tiauth serve

    # Or with uvicorn directly
    uvicorn tiauth.server.app:app --port 3031
"""

from .config import ServerSettings, get_settings

__all__ = ["ServerSettings", "get_settings"]

"""ParkChat - terminal client for ParkChat rooms.

Keeps one live WebSocket per joined room and interleaves incoming
messages with the user's prompt.
"""

__version__ = "1.0.3"

# Import the main entry point
from .main import main

__all__ = ["main", "__version__"]

"""WebSocket hub broadcasting restart events to connected peers."""

__version__ = "0.1.0"

from happenings.display.client import DisplayApiClient, DisplayApiError, DisplayConnectionError
from happenings.display.poller import ConnectionHealth, ConnectionStatus, DisplayPoller

__all__ = [
    "ConnectionHealth",
    "ConnectionStatus",
    "DisplayPoller",
    "DisplayApiClient",
    "DisplayApiError",
    "DisplayConnectionError",
]

from .ble_compat import *
from .discovery import *

__all__ = (
    "BoostHub",
    "BoostHubThread",
    "HubDiscovery",
)

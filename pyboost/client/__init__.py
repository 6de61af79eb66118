from .ble import *

__all__ = ("BoostHubSession",)

from .ble import *
from .client import *
from .config import *
from .server import *

__version__ = "0.1.0"

"""
modhost - plugin lifecycle and configuration host
"""

__version__ = "0.1.0"

from core.exceptions import (
    ConfigParseError,
    DataIOError,
    HostError,
    InvalidArgumentError,
    LifecycleError,
)
from core.services import HostServices

__all__ = [
    "HostError",
    "ConfigParseError",
    "DataIOError",
    "InvalidArgumentError",
    "LifecycleError",
    "HostServices",
]

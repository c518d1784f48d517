"""
Utilities package for rowcounter.

Exports shared helpers for logging, profiling and payload generation. Keep
this package lightweight and free of counter-protocol logic.
"""

from rowcounter.utils.logging import configure_logging, get_logger
from rowcounter.utils.payload import generate_payload
from rowcounter.utils.profiler import ProfileStats, profile_block

__all__ = [
    "configure_logging",
    "generate_payload",
    "get_logger",
    "ProfileStats",
    "profile_block",
]

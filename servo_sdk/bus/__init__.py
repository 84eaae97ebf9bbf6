"""Bus layer: receive buffer, session, response correlation and register access."""

from .buffer import RingBuffer
from .correlator import ResponseCorrelator
from .session import BusSession, Channel
from .registers import RegisterIO

__all__ = [
    "RingBuffer",
    "ResponseCorrelator",
    "BusSession",
    "Channel",
    "RegisterIO",
]

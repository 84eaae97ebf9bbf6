"""Byte stream transports for the servo bus."""

from .base import ByteStream
from .serial import SerialStream

__all__ = ["ByteStream", "SerialStream"]

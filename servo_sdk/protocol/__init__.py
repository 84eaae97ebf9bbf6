"""Binary frame codec for the servo bus."""

from .crc import CRC_TABLE, checksum
from .packet import (
    HEADER,
    encode,
    build_ping,
    build_reboot,
    build_read,
    build_write,
    build_register_read,
    build_register_write,
    build_sync_read,
    build_sync_write,
    build_register_sync_read,
    build_register_sync_write,
    build_status,
)
from .parser import (
    Packet,
    StatusPacket,
    decode_packet,
    find_header,
    frame_size,
    iter_packets,
    try_decode_status,
)

__all__ = [
    "CRC_TABLE",
    "checksum",
    "HEADER",
    "encode",
    "build_ping",
    "build_reboot",
    "build_read",
    "build_write",
    "build_register_read",
    "build_register_write",
    "build_sync_read",
    "build_sync_write",
    "build_register_sync_read",
    "build_register_sync_write",
    "build_status",
    "Packet",
    "StatusPacket",
    "decode_packet",
    "find_header",
    "frame_size",
    "iter_packets",
    "try_decode_status",
]

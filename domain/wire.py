from __future__ import annotations

import struct

from .models import PacketHeader

HEADER_FORMAT = "!QQ"  # send timestamp (ns), sequence number
HEADER_SIZE = struct.calcsize(HEADER_FORMAT)  # 16 bytes

UINT64_MASK = (1 << 64) - 1


class FramingError(ValueError):
    """Datagrama menor que o cabeçalho (ou cabeçalho ilegível)."""


def encode_header(send_timestamp_nanos: int, sequence_number: int) -> bytes:
    return struct.pack(
        HEADER_FORMAT,
        send_timestamp_nanos & UINT64_MASK,
        sequence_number & UINT64_MASK,
    )


def decode_header(data: bytes) -> PacketHeader:
    if len(data) < HEADER_SIZE:
        raise FramingError(f"datagram too short: {len(data)} bytes (header needs {HEADER_SIZE})")
    ts, seq = struct.unpack_from(HEADER_FORMAT, data, 0)
    return PacketHeader(send_timestamp_nanos=ts, sequence_number=seq)


def make_payload_buffer(datagram_size: int) -> bytearray:
    """
    Buffer reutilizável de um datagrama completo:
      [0:16]  cabeçalho (preenchido a cada envio)
      [16:N]  filler com padrão i % 256
    """
    if datagram_size < HEADER_SIZE:
        raise ValueError(f"datagram_size must be >= {HEADER_SIZE}, got {datagram_size}")
    buf = bytearray(datagram_size)
    buf[HEADER_SIZE:] = bytes(i % 256 for i in range(datagram_size - HEADER_SIZE))
    return buf


def stamp_header(buf: bytearray, send_timestamp_nanos: int, sequence_number: int) -> None:
    struct.pack_into(
        HEADER_FORMAT,
        buf,
        0,
        send_timestamp_nanos & UINT64_MASK,
        sequence_number & UINT64_MASK,
    )

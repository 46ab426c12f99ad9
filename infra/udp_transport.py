from __future__ import annotations

import logging
import socket
from typing import Optional, Tuple

from domain.ports import DatagramSink, DatagramSource

log = logging.getLogger(__name__)

MAX_DATAGRAM = 65535


class UdpDatagramSource(DatagramSource):
    """Leitura bloqueante de um socket UDP já aberto. Nunca retorna None."""

    def __init__(self, sock: socket.socket, bufsize: int = MAX_DATAGRAM):
        self.sock = sock
        self.bufsize = int(bufsize)

    def read(self) -> Optional[bytes]:
        data, _addr = self.sock.recvfrom(self.bufsize)
        return data


class UdpDatagramSink(DatagramSink):
    """Escrita num socket UDP conectado (connect() feito antes)."""

    def __init__(self, sock: socket.socket):
        self.sock = sock

    def write(self, data: bytes) -> int:
        return self.sock.send(data)


def open_listener(host: str, port: int, rcvbuf: Optional[int] = None) -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    if rcvbuf:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, int(rcvbuf))
    sock.bind((host, int(port)))
    log.info("[udp] listening on %s:%d", host, port)
    return sock


def open_sender(addr: Tuple[str, int], sndbuf: Optional[int] = None) -> socket.socket:
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    if sndbuf:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_SNDBUF, int(sndbuf))
    sock.connect((addr[0], int(addr[1])))
    log.info("[udp] sending to %s:%d", addr[0], addr[1])
    return sock

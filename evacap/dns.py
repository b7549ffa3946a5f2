"""Captive DNS server: answers every standard query with its own address."""

from __future__ import annotations

import socket
from ipaddress import IPv4Address

PORT_DNS_SERVER = 53
MAX_DNS_MSG_SIZE = 300
HEADER_SIZE = 12
MAX_LABEL = 63
MAX_QUESTION = 255
ANSWER_TTL = 60

RESPONSE_FLAGS = (1 << 15) | (1 << 10) | (1 << 7)


class DnsServer:
    """Resolves any name to the configured IPv4 address."""

    def __init__(self, ip: str | IPv4Address) -> None:
        self.ip = IPv4Address(ip)
        self.sock: socket.socket | None = None

    def process(self, data: bytes) -> bytes | None:
        """Build the answer to one query, or None if it is ignored."""
        msg = bytearray(data[:MAX_DNS_MSG_SIZE])
        msg_len = len(msg)
        if msg_len < HEADER_SIZE:
            return None

        flags = int.from_bytes(msg[2:4], "big")
        question_count = int.from_bytes(msg[4:6], "big")
        if (flags >> 15) & 0x1:
            return None
        if (flags >> 11) & 0xF:
            return None
        if question_count < 1:
            return None

        pos = HEADER_SIZE
        while pos < msg_len:
            label_len = msg[pos]
            pos += 1
            if label_len == 0:
                break
            if label_len > MAX_LABEL:
                return None
            pos += label_len
        if pos - HEADER_SIZE > MAX_QUESTION:
            return None

        pos += 4  # QTYPE and QCLASS
        answer = (
            bytes([0xC0, HEADER_SIZE, 0, 1, 0, 1])
            + ANSWER_TTL.to_bytes(4, "big")
            + (4).to_bytes(2, "big")
            + self.ip.packed
        )
        if pos + len(answer) > MAX_DNS_MSG_SIZE:
            return None
        if len(msg) < pos:
            msg.extend(bytes(pos - len(msg)))

        header = (
            bytes(msg[0:2])
            + RESPONSE_FLAGS.to_bytes(2, "big")
            + (1).to_bytes(2, "big")
            + (1).to_bytes(2, "big")
            + bytes(4)
        )
        return header + bytes(msg[HEADER_SIZE:pos]) + answer

    def bind(self, host: str = "0.0.0.0", port: int = PORT_DNS_SERVER) -> None:
        """Open the UDP socket the server listens on."""
        self.close()
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.bind((host, port))
        except OSError:
            sock.close()
            raise
        self.sock = sock

    def serve_once(self) -> bytes | None:
        """Handle one datagram, replying to its sender."""
        if self.sock is None:
            raise RuntimeError("server is not bound")
        data, source = self.sock.recvfrom(MAX_DNS_MSG_SIZE)
        reply = self.process(data)
        if reply is not None:
            self.sock.sendto(reply, source)
        return reply

    def close(self) -> None:
        if self.sock is not None:
            self.sock.close()
            self.sock = None

    def __enter__(self) -> DnsServer:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
"""Minimal DHCP server handing out a small pool of addresses on one subnet."""

from __future__ import annotations

import logging
import socket
import time
from dataclasses import dataclass, field
from ipaddress import IPv4Address
from typing import Callable

logger = logging.getLogger(__name__)

DHCPDISCOVER = 1
DHCPOFFER = 2
DHCPREQUEST = 3
DHCPDECLINE = 4
DHCPACK = 5
DHCPNACK = 6
DHCPRELEASE = 7
DHCPINFORM = 8

OPT_PAD = 0
OPT_SUBNET_MASK = 1
OPT_ROUTER = 3
OPT_DNS = 6
OPT_HOST_NAME = 12
OPT_REQUESTED_IP = 50
OPT_IP_LEASE_TIME = 51
OPT_MSG_TYPE = 53
OPT_SERVER_ID = 54
OPT_PARAM_REQUEST_LIST = 55
OPT_MAX_MSG_SIZE = 57
OPT_VENDOR_CLASS_ID = 60
OPT_CLIENT_ID = 61
OPT_END = 255

PORT_DHCP_SERVER = 67
PORT_DHCP_CLIENT = 68

DEFAULT_LEASE_TIME_S = 24 * 60 * 60
BASE_IP = 16
MAX_IP = 8
MAC_LEN = 6

MESSAGE_SIZE = 548
MIN_SIZE = 240 + 3
YIADDR_OFFSET = 16
CHADDR_OFFSET = 28
OPTIONS_OFFSET = 240  # just after the magic cookie
OPTIONS_SCAN_LIMIT = 308

_NO_MAC = bytes(MAC_LEN)


def _default_clock() -> int:
    return int(time.monotonic() * 1000)


def _int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


def find_option(options: bytes, code: int) -> bytes | None:
    """Return the value of the first option with this code, or None."""
    limit = min(OPTIONS_SCAN_LIMIT, len(options))
    i = 0
    while i < limit and options[i] != OPT_END:
        if i + 1 >= len(options):
            return None
        length = options[i + 1]
        if options[i] == code:
            return bytes(options[i + 2:i + 2 + length])
        i += 2 + length
    return None


@dataclass
class Lease:
    """One slot of the address pool: the client's MAC and a coarse expiry."""

    mac: bytes = field(default=_NO_MAC)
    expiry: int = 0

    @property
    def free(self) -> bool:
        return self.mac == _NO_MAC


class DhcpServer:
    """Answers DISCOVER with OFFER and REQUEST with ACK; ignores the rest."""

    def __init__(
        self,
        ip: str | IPv4Address,
        netmask: str | IPv4Address,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.ip = IPv4Address(ip)
        self.netmask = IPv4Address(netmask)
        self.clock = clock or _default_clock
        self.leases = [Lease() for _ in range(MAX_IP)]
        self.sock: socket.socket | None = None

    def _ticks(self) -> int:
        return self.clock() & 0xFFFFFFFF

    def _pick_offer(self, mac: bytes) -> int | None:
        chosen = None
        for index, lease in enumerate(self.leases):
            if lease.mac == mac:
                return index
            if chosen is None:
                if lease.free:
                    chosen = index
                expiry = (lease.expiry << 16) | 0xFFFF
                if _int32(expiry - self._ticks()) < 0:
                    lease.mac = _NO_MAC
                    chosen = index
        return chosen

    def _accept_request(self, requested: bytes | None, mac: bytes) -> int | None:
        if requested is None or len(requested) < 4:
            return None
        if requested[:3] != self.ip.packed[:3]:
            return None
        index = (requested[3] - BASE_IP) & 0xFF
        if index >= MAX_IP:
            return None
        lease = self.leases[index]
        if lease.mac != mac:
            if not lease.free:
                return None
            lease.mac = mac
        lease.expiry = ((self._ticks() + DEFAULT_LEASE_TIME_S * 1000) & 0xFFFFFFFF) >> 16
        return index

    def process(self, data: bytes) -> bytes | None:
        """Build the reply to one client message, or None if it is ignored."""
        if len(data) < MIN_SIZE:
            return None
        msg = bytearray(data[:MESSAGE_SIZE])
        msg.extend(bytes(MESSAGE_SIZE - len(msg)))

        msg[0] = DHCPOFFER
        msg[YIADDR_OFFSET:YIADDR_OFFSET + 4] = self.ip.packed
        mac = bytes(msg[CHADDR_OFFSET:CHADDR_OFFSET + MAC_LEN])

        msg_type = find_option(msg[OPTIONS_OFFSET:], OPT_MSG_TYPE)
        if not msg_type:
            return None

        if msg_type[0] == DHCPDISCOVER:
            index = self._pick_offer(mac)
            reply_type = DHCPOFFER
        elif msg_type[0] == DHCPREQUEST:
            requested = find_option(msg[OPTIONS_OFFSET:], OPT_REQUESTED_IP)
            index = self._accept_request(requested, mac)
            reply_type = DHCPACK
        else:
            return None
        if index is None:
            return None

        msg[YIADDR_OFFSET + 3] = BASE_IP + index
        if reply_type == DHCPACK:
            logger.info(
                "client connected: MAC=%s IP=%s",
                mac.hex(":"),
                IPv4Address(bytes(msg[YIADDR_OFFSET:YIADDR_OFFSET + 4])),
            )

        options = bytearray([OPT_MSG_TYPE, 1, reply_type])
        for code, value in (
            (OPT_SERVER_ID, self.ip.packed),
            (OPT_SUBNET_MASK, self.netmask.packed),
            (OPT_ROUTER, self.ip.packed),
            (OPT_DNS, self.ip.packed),
            (OPT_IP_LEASE_TIME, DEFAULT_LEASE_TIME_S.to_bytes(4, "big")),
        ):
            options += bytes([code, len(value)]) + value
        options.append(OPT_END)
        return bytes(msg[:OPTIONS_OFFSET]) + bytes(options)

    def bind(self, host: str = "0.0.0.0", port: int = PORT_DHCP_SERVER) -> None:
        """Open the UDP socket the server listens on."""
        self.close()
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
        except OSError:
            sock.close()
            raise
        self.sock = sock

    def serve_once(self) -> bytes | None:
        """Handle one datagram, broadcasting any reply to the client port."""
        if self.sock is None:
            raise RuntimeError("server is not bound")
        data, _ = self.sock.recvfrom(MESSAGE_SIZE)
        reply = self.process(data)
        if reply is not None:
            self.sock.sendto(reply, ("255.255.255.255", PORT_DHCP_CLIENT))
        return reply

    def close(self) -> None:
        if self.sock is not None:
            self.sock.close()
            self.sock = None

    def __enter__(self) -> DhcpServer:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()
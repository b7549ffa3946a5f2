from ipaddress import IPv4Address

import pytest

from evacap import dhcp
from evacap.dhcp import DhcpServer, find_option

GATEWAY = IPv4Address("192.168.4.1")
NETMASK = IPv4Address("255.255.255.0")
XID = bytes([0xAA, 0xBB, 0xCC, 0xDD])


class FakeClock:
    def __init__(self, now=1000):
        self.now = now

    def __call__(self):
        return self.now


def make_mac(n):
    return bytes([0x02, 0, 0, 0, 0, n])


def packet(mac, msg_type=None, extra=b""):
    header = bytearray(240)
    header[0:3] = bytes([1, 1, 6])
    header[4:8] = XID
    header[28:34] = mac
    header[236:240] = bytes([99, 130, 83, 99])
    opts = b""
    if msg_type is not None:
        opts += bytes([dhcp.OPT_MSG_TYPE, 1, msg_type])
    return bytes(header) + opts + extra + bytes([dhcp.OPT_END])


def requested(ip):
    return bytes([dhcp.OPT_REQUESTED_IP, 4]) + IPv4Address(ip).packed


def pool_address(index):
    return GATEWAY.packed[:3] + bytes([dhcp.BASE_IP + index])


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def server(clock):
    return DhcpServer(GATEWAY, NETMASK, clock)


def yiaddr(reply):
    return reply[16:20]


def options(reply):
    return reply[240:]


def test_find_option_returns_value():
    opts = bytes([53, 1, 1, 50, 4, 10, 0, 0, 7, 255])
    assert find_option(opts, 50) == bytes([10, 0, 0, 7])
    assert find_option(opts, 53) == bytes([1])


def test_find_option_stops_at_end():
    opts = bytes([53, 1, 1, 255, 50, 4, 10, 0, 0, 7])
    assert find_option(opts, 50) is None


def test_short_packet_ignored(server):
    assert server.process(packet(make_mac(1), dhcp.DHCPDISCOVER)[:200]) is None


def test_discover_gets_offer(server):
    reply = server.process(packet(make_mac(1), dhcp.DHCPDISCOVER))
    assert reply[0] == dhcp.DHCPOFFER
    assert reply[4:8] == XID
    assert yiaddr(reply) == pool_address(0)
    opts = options(reply)
    assert find_option(opts, dhcp.OPT_MSG_TYPE) == bytes([dhcp.DHCPOFFER])
    assert find_option(opts, dhcp.OPT_SERVER_ID) == GATEWAY.packed
    assert find_option(opts, dhcp.OPT_SUBNET_MASK) == NETMASK.packed
    assert find_option(opts, dhcp.OPT_ROUTER) == GATEWAY.packed
    assert find_option(opts, dhcp.OPT_DNS) == GATEWAY.packed
    assert find_option(opts, dhcp.OPT_IP_LEASE_TIME) == dhcp.DEFAULT_LEASE_TIME_S.to_bytes(4, "big")
    assert reply[-1] == dhcp.OPT_END


def test_discover_does_not_reserve(server):
    server.process(packet(make_mac(1), dhcp.DHCPDISCOVER))
    assert all(lease.free for lease in server.leases)


def test_request_gets_ack_and_records_lease(server):
    mac = make_mac(1)
    reply = server.process(
        packet(mac, dhcp.DHCPREQUEST, requested(IPv4Address(pool_address(0))))
    )
    assert find_option(options(reply), dhcp.OPT_MSG_TYPE) == bytes([dhcp.DHCPACK])
    assert yiaddr(reply) == pool_address(0)
    assert server.leases[0].mac == mac


def test_known_mac_gets_same_address_and_others_next(server):
    mac = make_mac(1)
    server.process(packet(mac, dhcp.DHCPREQUEST, requested(IPv4Address(pool_address(0)))))
    again = server.process(packet(mac, dhcp.DHCPDISCOVER))
    other = server.process(packet(make_mac(2), dhcp.DHCPDISCOVER))
    assert yiaddr(again) == pool_address(0)
    assert yiaddr(other) == pool_address(1)


def test_request_without_requested_ip_ignored(server):
    assert server.process(packet(make_mac(1), dhcp.DHCPREQUEST)) is None


def test_request_other_subnet_ignored(server):
    reply = server.process(packet(make_mac(1), dhcp.DHCPREQUEST, requested("10.0.0.16")))
    assert reply is None
    assert server.leases[0].free


def test_request_outside_pool_ignored(server):
    outside = IPv4Address(pool_address(dhcp.MAX_IP))
    assert server.process(packet(make_mac(1), dhcp.DHCPREQUEST, requested(outside))) is None


def test_request_taken_address_ignored(server):
    address = IPv4Address(pool_address(0))
    server.process(packet(make_mac(1), dhcp.DHCPREQUEST, requested(address)))
    assert server.process(packet(make_mac(2), dhcp.DHCPREQUEST, requested(address))) is None
    assert server.leases[0].mac == make_mac(1)


def test_missing_message_type_ignored(server):
    assert server.process(packet(make_mac(1), extra=bytes([12, 1, ord("x")]))) is None


def test_other_message_type_ignored(server):
    assert server.process(packet(make_mac(1), dhcp.DHCPRELEASE)) is None


def fill_pool(server):
    for index in range(dhcp.MAX_IP):
        server.process(
            packet(make_mac(index + 1), dhcp.DHCPREQUEST, requested(IPv4Address(pool_address(index))))
        )


def test_full_pool_ignores_new_client(server):
    fill_pool(server)
    assert all(not lease.free for lease in server.leases)
    assert server.process(packet(make_mac(100), dhcp.DHCPDISCOVER)) is None


def test_expired_lease_is_reused(server, clock):
    fill_pool(server)
    clock.now += dhcp.DEFAULT_LEASE_TIME_S * 1000 + 200_000
    reply = server.process(packet(make_mac(100), dhcp.DHCPDISCOVER))
    assert yiaddr(reply) == pool_address(0)
    assert server.leases[0].free


def test_serve_once_requires_bind(server):
    with pytest.raises(RuntimeError):
        server.serve_once()


def test_context_manager_closes_socket(clock):
    with DhcpServer(GATEWAY, NETMASK, clock) as server:
        server.bind("127.0.0.1", 0)
        assert server.sock.getsockname()[0] == "127.0.0.1"
    assert server.sock is None
"""Evacuation alarm controlled from a small web page, with captive DHCP/DNS."""

from __future__ import annotations

import argparse
import logging
import os
import selectors
import socket
import sys
import time
from dataclasses import dataclass
from ipaddress import IPv4Address
from typing import Callable, Protocol

from .dhcp import PORT_DHCP_SERVER, DhcpServer
from .dns import PORT_DNS_SERVER, DnsServer
from .display import FrameBuffer, RenderArea

logger = logging.getLogger(__name__)

BUZZER_FREQ = 2000
BLINK_INTERVAL_MS = 300
PWM_CLOCK_DIVIDER = 100
PWM_BASE_HZ = 1_250_000.0
PWM_MAX_WRAP = 65535

TCP_PORT = 80
POLL_TIME_S = 5
DEFAULT_GATEWAY = "192.168.4.1"
DEFAULT_NETMASK = "255.255.255.0"

HEADERS_SIZE = 128
RESULT_SIZE = 256

LED_TEST = "/ledtest"
ALARM_TEXT = "EVACUAR"
IDLE_TEXT = "Sistema em repouso"
LED_TEST_BODY = (
    "<html><body><h1>Controle de Evacuação</h1>"
    "<form method='get'>"
    "<button type='submit' name='cmd' value='on'>Ligar</button>"
    "<button type='submit' name='cmd' value='off'>Desligar</button>"
    "</form></body></html>"
)
HTTP_RESPONSE_HEADERS = (
    "HTTP/1.1 {status} OK\nContent-Length: {length}\n"
    "Content-Type: text/html; charset=utf-8\nConnection: close\n\n"
)
HTTP_RESPONSE_REDIRECT = "HTTP/1.1 302 Redirect\nLocation: http://{host}" + LED_TEST + "\n\n"


class ResponseTooLarge(Exception):
    """The generated response does not fit the connection's buffers."""


@dataclass(frozen=True)
class PwmSettings:
    """PWM slice configuration: clock divider, wrap (period) and channel level."""

    divider: int
    wrap: int
    level: int


def buzzer_pwm_settings(frequency: float) -> PwmSettings:
    """PWM settings giving a square wave of this frequency at 50% duty."""
    if frequency <= 0:
        raise ValueError(f"frequency must be positive, got {frequency}")
    wrap_float = min(max(PWM_BASE_HZ / frequency, 1.0), float(PWM_MAX_WRAP))
    wrap = int(wrap_float)
    return PwmSettings(PWM_CLOCK_DIVIDER, wrap, wrap // 2)


class Led(Protocol):
    def write(self, on: bool) -> None: ...


class Buzzer(Protocol):
    def start(self, settings: PwmSettings) -> None: ...

    def stop(self) -> None: ...


class Display(Protocol):
    def render(self, buffer: FrameBuffer, area: RenderArea) -> None: ...


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


class EvacuationController:
    """Alarm state: blinks the LED and buzzer while active, shows it on the OLED."""

    def __init__(
        self,
        display: Display | None = None,
        led: Led | None = None,
        buzzer: Buzzer | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.display = display
        self.led = led
        self.buzzer = buzzer
        self.clock = clock or _monotonic_ms
        self.active = False
        self.blink_on = False
        self.next_toggle = 0
        self.frame = FrameBuffer()

    def _set_led(self, on: bool) -> None:
        if self.led is not None:
            self.led.write(on)

    def _set_buzzer(self, on: bool) -> None:
        if self.buzzer is None:
            return
        if on:
            self.buzzer.start(buzzer_pwm_settings(BUZZER_FREQ))
        else:
            self.buzzer.stop()

    def activate(self) -> None:
        """Start the alarm; the first blink happens on the next update."""
        self.active = True
        self.next_toggle = self.clock()
        self.show_state(True)

    def deactivate(self) -> None:
        """Stop the alarm and silence the outputs."""
        self.active = False
        self._set_led(False)
        self._set_buzzer(False)
        self.show_state(False)

    def update(self) -> None:
        """Advance the blink cycle; call this often from the main loop."""
        if self.active:
            now = self.clock()
            if self.next_toggle - now <= 0:
                self.blink_on = not self.blink_on
                self._set_led(self.blink_on)
                self._set_buzzer(self.blink_on)
                self.next_toggle = now + BLINK_INTERVAL_MS
        else:
            self._set_led(False)
            self._set_buzzer(False)
            self.blink_on = False

    def _render(self) -> None:
        if self.display is not None:
            self.display.render(self.frame, RenderArea())

    def show_state(self, alarm_on: bool) -> None:
        """Draw the alarm or idle message on the display."""
        self.frame.clear()
        self.frame.draw_string(0, 0, ALARM_TEXT if alarm_on else IDLE_TEXT)
        self._render()

    def clear_display(self) -> None:
        self.frame.clear()
        self._render()


class HttpHandler:
    """Turns one raw HTTP request into the bytes of the response."""

    def __init__(
        self,
        controller: EvacuationController,
        gateway: str | IPv4Address = DEFAULT_GATEWAY,
    ) -> None:
        self.controller = controller
        self.gateway = IPv4Address(gateway)

    def page_content(self, path: str, params: str | None = None) -> str:
        """Body for a path, acting on any command; empty if the path is unknown."""
        if not path.startswith(LED_TEST):
            return ""
        if params:
            if "cmd=on" in params:
                self.controller.activate()
            elif "cmd=off" in params:
                self.controller.deactivate()
        return LED_TEST_BODY

    @staticmethod
    def _split_request(request: str) -> tuple[str, str | None]:
        query = request.find("?")
        if query < 0:
            return request, None
        space = request.find(" ")
        if space < 0:
            return request[:query], request[query + 1:]
        if space < query:
            return request[:space], request[query + 1:]
        return request[:query], request[query + 1:space]

    def handle_request(self, data: bytes) -> bytes | None:
        """Build the response to a GET request; None for anything else.

        Only the first 127 bytes of the request are looked at.
        """
        text = bytes(data[:HEADERS_SIZE - 1]).decode("latin-1").split("\0", 1)[0]
        if not text.startswith("GET"):
            return None
        path, params = self._split_request(text[len("GET") + 1:])
        body = self.page_content(path, params).encode("utf-8")
        logger.debug("Request: %s?%s", path, params)
        if len(body) > RESULT_SIZE - 1:
            raise ResponseTooLarge(f"too much result data {len(body)}")
        if body:
            header = HTTP_RESPONSE_HEADERS.format(status=200, length=len(body)).encode()
            if len(header) > HEADERS_SIZE - 1:
                raise ResponseTooLarge(f"too much header data {len(header)}")
        else:
            header = HTTP_RESPONSE_REDIRECT.format(host=self.gateway).encode()
            header = header[:HEADERS_SIZE - 1]
            logger.debug("Sending redirect %s", header)
        return header + body


class _LogLed:
    """LED stand-in that keeps its level and reports changes to the log."""

    def __init__(self) -> None:
        self.on = False

    def write(self, on: bool) -> None:
        if on != self.on:
            self.on = on
            logger.info("LED %s", "on" if on else "off")


class _LogBuzzer:
    """Buzzer stand-in that keeps its PWM settings and reports changes to the log."""

    def __init__(self) -> None:
        self.settings: PwmSettings | None = None

    def start(self, settings: PwmSettings) -> None:
        if settings != self.settings:
            self.settings = settings
            logger.info("buzzer on (divider %d, wrap %d)", settings.divider, settings.wrap)

    def stop(self) -> None:
        if self.settings is not None:
            self.settings = None
            logger.debug("buzzer off")


def _serve_client(conn: socket.socket, handler: HttpHandler) -> bool:
    """Handle data on a client connection; True when it should be closed."""
    try:
        data = conn.recv(4096)
    except OSError:
        return True
    if not data:
        return True
    try:
        reply = handler.handle_request(data)
    except ResponseTooLarge as exc:
        logger.warning("%s", exc)
        return True
    if reply is None:
        return False
    try:
        conn.sendall(reply)
    except OSError as exc:
        logger.warning("failed to write response: %s", exc)
    return True


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Evacuation alarm web server.")
    parser.add_argument("--host", default="0.0.0.0", help="address to listen on")
    parser.add_argument("--port", type=int, default=TCP_PORT, help="HTTP port")
    parser.add_argument("--gateway", default=DEFAULT_GATEWAY, help="address handed to clients")
    parser.add_argument("--netmask", default=DEFAULT_NETMASK, help="subnet mask for DHCP")
    parser.add_argument("--dhcp-port", type=int, default=PORT_DHCP_SERVER)
    parser.add_argument("--dns-port", type=int, default=PORT_DNS_SERVER)
    parser.add_argument("--no-dhcp", action="store_true", help="do not run the DHCP server")
    parser.add_argument("--no-dns", action="store_true", help="do not run the DNS server")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    controller = EvacuationController(led=_LogLed(), buzzer=_LogBuzzer())
    controller.show_state(False)
    handler = HttpHandler(controller, args.gateway)

    dhcp = DhcpServer(args.gateway, args.netmask)
    dns = DnsServer(args.gateway)
    if not args.no_dhcp:
        try:
            dhcp.bind(args.host, args.dhcp_port)
        except OSError as exc:
            logger.warning("DHCP server not started: %s", exc)
    if not args.no_dns:
        try:
            dns.bind(args.host, args.dns_port)
        except OSError as exc:
            print(f"dns failed to bind to port {args.dns_port}: {exc}", file=sys.stderr)
            dhcp.close()
            return 1

    try:
        listener = socket.create_server((args.host, args.port), backlog=1)
    except OSError as exc:
        print(f"failed to open server: {exc}", file=sys.stderr)
        dns.close()
        dhcp.close()
        return 1

    print(f"Try connecting to http://{args.gateway}:{args.port} (enter 'd' to stop)")

    selector = selectors.DefaultSelector()
    selector.register(listener, selectors.EVENT_READ, "accept")
    for server, name in ((dhcp, "dhcp"), (dns, "dns")):
        if server.sock is not None:
            selector.register(server.sock, selectors.EVENT_READ, name)
    watch_keys = os.name == "posix" and sys.stdin is not None and sys.stdin.isatty()
    if watch_keys:
        selector.register(sys.stdin, selectors.EVENT_READ, "key")

    clients: dict[socket.socket, float] = {}

    def drop(conn: socket.socket) -> None:
        selector.unregister(conn)
        clients.pop(conn, None)
        conn.close()

    complete = False
    try:
        while not complete:
            controller.update()
            for key, _ in selector.select(timeout=0.01):
                kind = key.data
                if kind == "accept":
                    try:
                        conn, _ = listener.accept()
                    except OSError:
                        logger.warning("failure in accept")
                        continue
                    conn.settimeout(POLL_TIME_S)
                    clients[conn] = time.monotonic() + POLL_TIME_S
                    selector.register(conn, selectors.EVENT_READ, "client")
                elif kind == "dhcp":
                    try:
                        dhcp.serve_once()
                    except OSError as exc:
                        logger.warning("DHCP: %s", exc)
                elif kind == "dns":
                    try:
                        dns.serve_once()
                    except OSError as exc:
                        logger.warning("DNS: %s", exc)
                elif kind == "key":
                    line = sys.stdin.readline()
                    if not line:
                        selector.unregister(sys.stdin)
                    elif line[:1] in ("d", "D"):
                        complete = True
                else:
                    conn = key.fileobj
                    if _serve_client(conn, handler):
                        drop(conn)
            now = time.monotonic()
            for conn in [c for c, deadline in clients.items() if deadline <= now]:
                drop(conn)
    except KeyboardInterrupt:
        pass
    finally:
        for conn in list(clients):
            drop(conn)
        selector.close()
        listener.close()
        dns.close()
        dhcp.close()
        controller.clear_display()

    print("Test complete")
    return 0
# evacap

evacap is an evacuation alarm that you control from a small web page. It also runs a captive DHCP server and a captive DNS server, so a client on the same network is sent to that page.

The package has these modules:

- `evacap.app`: `EvacuationController` holds the alarm state. `HttpHandler` turns raw HTTP requests into raw responses. `main` is the `evacap` command.
- `evacap.dhcp`: `DhcpServer` answers DISCOVER with OFFER and REQUEST with ACK. It hands out addresses from a pool of 8, from `.16` to `.23` on the server's subnet, with a lease time of 24 hours.
- `evacap.dns`: `DnsServer` answers every standard query with an A record for its own address. The TTL of that record is 60 seconds.
- `evacap.display`: `FrameBuffer` is a 128×64 page-organised frame buffer that can draw pixels, lines (Bresenham) and text. `Ssd1306` and `BitmapDisplay` write SSD1306 command and data bytes to a bus object that you supply.
- `evacap.font`: the 8×8 font. It has glyphs for `A`–`Z` and `0`–`9`. Any other character is drawn blank, and lower-case letters are drawn as upper case.

## Installation

```
pip install .
```

To install with the test dependencies:

```
pip install .[test]
```

## Running

```
evacap
```

This command does the following:

- It serves the control page over HTTP. The default port is 80.
- It starts the DHCP server on UDP port 67 and the DNS server on UDP port 53.
- It prints `Try connecting to http://<gateway>:<port> (enter 'd' to stop)`.

When stdin is a terminal, type `d` and press Enter to stop. Ctrl-C also stops the command. The default ports usually need administrator rights.

Options:

| Option | Default | Meaning |
| --- | --- | --- |
| `--host` | `0.0.0.0` | address to listen on |
| `--port` | `80` | HTTP port |
| `--gateway` | `192.168.4.1` | the server's address, as given in DHCP and DNS answers and in redirects |
| `--netmask` | `255.255.255.0` | subnet mask given by DHCP |
| `--dhcp-port` | `67` | DHCP server port |
| `--dns-port` | `53` | DNS server port |
| `--no-dhcp` | | do not run the DHCP server |
| `--no-dns` | | do not run the DNS server |

How the command handles failures to open its ports:

- If the DHCP port cannot be bound, a warning is logged and the command carries on.
- If the DNS port cannot be bound, the command exits with status 1.
- If the HTTP port cannot be opened, the command also exits with status 1.

How the command handles HTTP requests:

- `GET /ledtest` returns the control page. The page has two buttons, "Ligar" and "Desligar".
- `?cmd=on` starts the alarm. `?cmd=off` stops it.
- A GET for any other path gets a `302` redirect to `http://<gateway>/ledtest`.
- Each response is followed by closing the connection.
- Connections that stay idle for 5 seconds are dropped.

## Library use

### Frame buffer and display

```python
from evacap.display import FrameBuffer, RenderArea, Ssd1306

class Bus:
    def write(self, address, data):
        print(hex(address), data.hex())

fb = FrameBuffer(128, 64)
fb.draw_string(0, 0, "EVACUAR")
fb.draw_line(0, 10, 127, 10, True)
raw = fb.to_bytes()                 # 1024 page-ordered bytes

oled = Ssd1306(Bus())
oled.init()
oled.render(fb, RenderArea())       # whole screen
```

- `FrameBuffer.set_pixel` raises `ValueError` for coordinates off the buffer.
- `FrameBuffer.draw_char` and `FrameBuffer.draw_string` skip text whose start does not fit.
- `BitmapDisplay.draw_bitmap` raises `ValueError` if the bitmap is shorter than the screen.

### DHCP and DNS servers

`DhcpServer.process(data)` and `DnsServer.process(data)` take the raw bytes of one packet and return the raw reply, or `None` when the packet is ignored. They open no sockets, so you can use them directly:

```python
from evacap.dhcp import DhcpServer
from evacap.dns import DnsServer

dns = DnsServer("192.168.4.1")
query = bytes.fromhex("1234 0100 0001 0000 0000 0000") + b"\x07example\x03com\x00\x00\x01\x00\x01"
reply = dns.process(query)

dhcp = DhcpServer("192.168.4.1", "255.255.255.0", clock=lambda: 0)
```

To attach a server to a UDP socket:

- `bind(host, port)` opens the socket.
- `serve_once()` handles one datagram. The DHCP server broadcasts its reply to port 68. The DNS server replies to the sender.
- Both classes are context managers that close their socket on exit.

### Alarm controller and HTTP handler

`EvacuationController(display, led, buzzer, clock)` drives the alarm:

- `activate()` starts the alarm and shows `EVACUAR` on the display.
- `deactivate()` stops the alarm, switches the LED and buzzer off, and shows `Sistema em repouso`.
- `update()` toggles the LED and buzzer every 300 ms while the alarm is active. Call it often.

The LED, buzzer and display are objects you pass in. Each may be `None`.

`buzzer_pwm_settings(frequency)` gives the PWM divider, wrap and 50% level for a tone.

`HttpHandler(controller, gateway).handle_request(data)` works as follows:

- It reads only the first 127 bytes of the request.
- It returns `None` for anything that is not a GET.
- It raises `ResponseTooLarge` if the response would not fit its buffers.

## What it does not do

- The `evacap` command does not drive any hardware. The LED and buzzer are stand-ins that only log their changes, and no display is attached.
- To use an OLED, pass your own objects to `EvacuationController`: a display with `render`, an LED with `write`, and a buzzer with `start`/`stop`. For the SSD1306 drivers, provide a bus object with `write(address, data)`.
- The package does not create a Wi-Fi access point. It serves DHCP, DNS and HTTP on whatever network interface the host already has.

## Tests

```
pytest
```
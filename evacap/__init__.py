"""Evacuation alarm: HTTP control page, captive DHCP and DNS servers, SSD1306 frame buffer and font."""

__version__ = "0.1.0"
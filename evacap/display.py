"""SSD1306 OLED frame buffer, text drawing and I2C command sequences."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Protocol

from .font import GLYPH_SIZE, glyph

HEIGHT = 64
WIDTH = 128
PAGE_HEIGHT = 8
N_PAGES = HEIGHT // PAGE_HEIGHT
BUFFER_LENGTH = N_PAGES * WIDTH
I2C_ADDRESS = 0x3C
I2C_CLOCK_KHZ = 400

SET_MEMORY_MODE = 0x20
SET_COLUMN_ADDRESS = 0x21
SET_PAGE_ADDRESS = 0x22
SET_HORIZONTAL_SCROLL = 0x26
SET_SCROLL = 0x2E
SET_DISPLAY_START_LINE = 0x40
SET_CONTRAST = 0x81
SET_CHARGE_PUMP = 0x8D
SET_SEGMENT_REMAP = 0xA0
SET_ENTIRE_ON = 0xA4
SET_ALL_ON = 0xA5
SET_NORMAL_DISPLAY = 0xA6
SET_INVERSE_DISPLAY = 0xA7
SET_MUX_RATIO = 0xA8
SET_DISPLAY = 0xAE
SET_COMMON_OUTPUT_DIRECTION = 0xC0
SET_DISPLAY_OFFSET = 0xD3
SET_DISPLAY_CLOCK_DIVIDE_RATIO = 0xD5
SET_PRECHARGE = 0xD9
SET_COMMON_PIN_CONFIGURATION = 0xDA
SET_VCOMH_DESELECT_LEVEL = 0xDB

COMMAND_CONTROL = 0x80
DATA_CONTROL = 0x40


class I2CBus(Protocol):
    """Anything that can write a block of bytes to a device address."""

    def write(self, address: int, data: bytes) -> None: ...


@dataclass
class RenderArea:
    """A rectangle of columns and pages to push to the display."""

    start_column: int = 0
    end_column: int = WIDTH - 1
    start_page: int = 0
    end_page: int = N_PAGES - 1

    def buffer_length(self) -> int:
        """Number of bytes the area covers."""
        return (self.end_column - self.start_column + 1) * (
            self.end_page - self.start_page + 1
        )


class FrameBuffer:
    """Page-organised monochrome buffer: one byte holds eight vertical pixels."""

    def __init__(self, width: int = WIDTH, height: int = HEIGHT) -> None:
        self.width = width
        self.height = height
        self.data = bytearray((height // PAGE_HEIGHT) * width)

    def clear(self) -> None:
        self.data[:] = bytes(len(self.data))

    def set_pixel(self, x: int, y: int, on: bool) -> None:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise ValueError(f"pixel ({x}, {y}) outside {self.width}x{self.height}")
        index = (y // PAGE_HEIGHT) * self.width + x
        mask = 1 << (y % PAGE_HEIGHT)
        if on:
            self.data[index] |= mask
        else:
            self.data[index] &= ~mask & 0xFF

    def draw_line(self, x0: int, y0: int, x1: int, y1: int, on: bool) -> None:
        """Draw a line with Bresenham's algorithm, endpoints included."""
        dx = abs(x1 - x0)
        dy = -abs(y1 - y0)
        sx = 1 if x0 < x1 else -1
        sy = 1 if y0 < y1 else -1
        error = dx + dy
        while True:
            self.set_pixel(x0, y0, on)
            if x0 == x1 and y0 == y1:
                break
            doubled = 2 * error
            if doubled >= dy:
                error += dy
                x0 += sx
            if doubled <= dx:
                error += dx
                y0 += sy

    def _fits(self, x: int, y: int) -> bool:
        return 0 <= x <= self.width - GLYPH_SIZE and 0 <= y <= self.height - GLYPH_SIZE

    def draw_char(self, x: int, y: int, character: str) -> None:
        """Draw one character at column x, on the page holding row y.

        Characters that would not fit are silently skipped.
        """
        if not self._fits(x, y):
            return
        if "a" <= character <= "z":
            character = character.upper()
        start = (y // PAGE_HEIGHT) * self.width + x
        self.data[start:start + GLYPH_SIZE] = glyph(character)

    def draw_string(self, x: int, y: int, text: str) -> None:
        """Draw text left to right, eight columns per character."""
        if not self._fits(x, y):
            return
        for offset, character in enumerate(text):
            self.draw_char(x + offset * GLYPH_SIZE, y, character)

    def to_bytes(self) -> bytes:
        return bytes(self.data)

    def __bytes__(self) -> bytes:
        return self.to_bytes()


class Ssd1306:
    """Command interface to an SSD1306 controller of the default geometry."""

    def __init__(self, bus: I2CBus, address: int = I2C_ADDRESS) -> None:
        self.bus = bus
        self.address = address

    def send_command(self, command: int) -> None:
        self.bus.write(self.address, bytes([COMMAND_CONTROL, command & 0xFF]))

    def send_command_list(self, commands: Iterable[int]) -> None:
        for command in commands:
            self.send_command(command)

    def send_buffer(self, data: bytes) -> None:
        self.bus.write(self.address, bytes([DATA_CONTROL]) + bytes(data))

    def init(self) -> None:
        """Send the power-up configuration sequence and switch the panel on."""
        pin_config = 0x12 if (WIDTH, HEIGHT) == (128, 64) else 0x02
        self.send_command_list(
            [
                SET_DISPLAY,
                SET_MEMORY_MODE, 0x00,
                SET_DISPLAY_START_LINE,
                SET_SEGMENT_REMAP | 0x01,
                SET_MUX_RATIO, HEIGHT - 1,
                SET_COMMON_OUTPUT_DIRECTION | 0x08,
                SET_DISPLAY_OFFSET, 0x00,
                SET_COMMON_PIN_CONFIGURATION, pin_config,
                SET_DISPLAY_CLOCK_DIVIDE_RATIO, 0x80,
                SET_PRECHARGE, 0xF1,
                SET_VCOMH_DESELECT_LEVEL, 0x30,
                SET_CONTRAST, 0xFF,
                SET_ENTIRE_ON,
                SET_NORMAL_DISPLAY,
                SET_CHARGE_PUMP, 0x14,
                SET_SCROLL | 0x00,
                SET_DISPLAY | 0x01,
            ]
        )

    def scroll(self, enabled: bool) -> None:
        self.send_command_list(
            [
                SET_HORIZONTAL_SCROLL | 0x00, 0x00, 0x00, 0x00, 0x03, 0x00, 0xFF,
                SET_SCROLL | (0x01 if enabled else 0x00),
            ]
        )

    def render(self, buffer: bytes | FrameBuffer, area: RenderArea) -> None:
        """Select the area on the controller and send its bytes."""
        self.send_command_list(
            [
                SET_COLUMN_ADDRESS, area.start_column, area.end_column,
                SET_PAGE_ADDRESS, area.start_page, area.end_page,
            ]
        )
        self.send_buffer(bytes(buffer)[:area.buffer_length()])


class BitmapDisplay:
    """Display driven from a whole-screen bitmap held in RAM."""

    def __init__(
        self,
        bus: I2CBus,
        width: int = WIDTH,
        height: int = HEIGHT,
        address: int = I2C_ADDRESS,
        external_vcc: bool = False,
    ) -> None:
        self.bus = bus
        self.width = width
        self.height = height
        self.pages = height // PAGE_HEIGHT
        self.address = address
        self.external_vcc = external_vcc
        self.bufsize = self.pages * width + 1
        self.ram_buffer = bytearray(self.bufsize)
        self.ram_buffer[0] = DATA_CONTROL

    def command(self, value: int) -> None:
        self.bus.write(self.address, bytes([COMMAND_CONTROL, value & 0xFF]))

    def config(self) -> None:
        """Send the configuration sequence used for bitmap output."""
        for value in (
            SET_DISPLAY | 0x00,
            SET_MEMORY_MODE, 0x01,
            SET_DISPLAY_START_LINE | 0x00,
            SET_SEGMENT_REMAP | 0x01,
            SET_MUX_RATIO, HEIGHT - 1,
            SET_COMMON_OUTPUT_DIRECTION | 0x08,
            SET_DISPLAY_OFFSET, 0x00,
            SET_COMMON_PIN_CONFIGURATION, 0x12,
            SET_DISPLAY_CLOCK_DIVIDE_RATIO, 0x80,
            SET_PRECHARGE, 0xF1,
            SET_VCOMH_DESELECT_LEVEL, 0x30,
            SET_CONTRAST, 0xFF,
            SET_ENTIRE_ON,
            SET_NORMAL_DISPLAY,
            SET_CHARGE_PUMP, 0x14,
            SET_DISPLAY | 0x01,
        ):
            self.command(value)

    def send_data(self) -> None:
        self.command(SET_COLUMN_ADDRESS)
        self.command(0)
        self.command(self.width - 1)
        self.command(SET_PAGE_ADDRESS)
        self.command(0)
        self.command(self.pages - 1)
        self.bus.write(self.address, bytes(self.ram_buffer))

    def draw_bitmap(self, bitmap: bytes) -> None:
        """Copy the bitmap into RAM, pushing the frame after every byte."""
        size = self.bufsize - 1
        if len(bitmap) < size:
            raise ValueError(f"bitmap needs {size} bytes, got {len(bitmap)}")
        for position, value in enumerate(bitmap[:size], start=1):
            self.ram_buffer[position] = value
            self.send_data()
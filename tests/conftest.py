"""
Fixtures that build small PNG and JPEG files in memory.

PNGs are assembled chunk by chunk so any IHDR combination can be produced,
including ones no encoder would write. JPEGs come from Pillow, except for
frame layouts Pillow can't write (12/16 bit), which are built marker by marker.
"""

import io
import struct
import zlib

import pytest
from PIL import Image

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
PNG_CHANNELS = {0: 1, 2: 3, 3: 1, 4: 2, 6: 4}


def png_chunk(kind, body):
    crc = zlib.crc32(kind + body) & 0xFFFFFFFF
    return struct.pack(">I", len(body)) + kind + body + struct.pack(">I", crc)


def make_png(width, height, bit_depth=8, color_type=2):
    channels = PNG_CHANNELS.get(color_type, 1)
    row = 1 + (width * channels * bit_depth + 7) // 8

    ihdr = struct.pack(">IIBBBBB", width, height, bit_depth, color_type, 0, 0, 0)
    chunks = [png_chunk(b"IHDR", ihdr)]
    if color_type == 3:
        chunks.append(png_chunk(b"PLTE", b"\x00\x00\x00\xff\xff\xff"))
    chunks.append(png_chunk(b"IDAT", zlib.compress(b"\x00" * row * height)))
    chunks.append(png_chunk(b"IEND", b""))

    return PNG_SIGNATURE + b"".join(chunks)


def make_jpeg(width, height, mode="RGB"):
    buf = io.BytesIO()
    Image.new(mode, (width, height)).save(buf, "JPEG")
    return buf.getvalue()


def make_jpeg_frame(width, height, precision, components, sof=0xC3, prefix=b""):
    """Bare SOI + frame header + EOI, enough for the header walk."""
    body = struct.pack(">BHHB", precision, height, width, components)
    for i in range(components):
        body += bytes([i + 1, 0x11, 0])
    frame = b"\xff" + bytes([sof]) + struct.pack(">H", len(body) + 2) + body
    return b"\xff\xd8" + prefix + frame + b"\xff\xd9"


@pytest.fixture
def rgb_png():
    return make_png(100, 200, 8, 2)


@pytest.fixture
def rgb_jpeg():
    return make_jpeg(64, 48, "RGB")


@pytest.fixture
def image_dir(tmp_path, rgb_png, rgb_jpeg):
    (tmp_path / "cover.png").write_bytes(rgb_png)
    (tmp_path / "cover.jpg").write_bytes(rgb_jpeg)
    return tmp_path

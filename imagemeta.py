# read the picture metadata FLAC wants from PNG and JPEG headers

import io
import enum
import struct
from typing import NamedTuple
from PIL import PngImagePlugin


class ImageFormat(enum.Enum):
    PNG = "image/png"
    JPEG = "image/jpeg"

    @property
    def mime(self):
        return self.value


class DecodeError(Exception):
    def __init__(self, fmt: ImageFormat, reason):
        self.format = fmt
        self.reason = reason
        super().__init__("{} decode error: {}".format(fmt.name, reason))


class ImageMetadata(NamedTuple):
    """
    Metadata of one image plus the image itself.

    `data` is the caller's buffer, not a copy. It has to stay alive and
    unmodified for as long as the record is used.
    """

    mime: str
    width: int
    height: int
    bit_depth: int
    data: bytes


PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

# color type -> channels, indexed images count as one channel
PNG_CHANNELS = {
    0: 1,  # grayscale
    2: 3,  # RGB
    3: 1,  # indexed
    4: 2,  # grayscale + alpha
    6: 4,  # RGBA
}

# color type -> allowed bits per sample
PNG_SAMPLE_DEPTHS = {
    0: (1, 2, 4, 8, 16),
    2: (8, 16),
    3: (1, 2, 4, 8),
    4: (8, 16),
    6: (8, 16),
}

# length, type, width, height, bit depth, color type
IHDR = struct.Struct(">I4sIIBB")


def _png_metadata(data) -> ImageMetadata:
    fmt = ImageFormat.PNG

    # walks the chunks up to IDAT checking CRCs, no inflating and no
    # Image.open pixel count limit
    try:
        with PngImagePlugin.PngImageFile(io.BytesIO(data)) as img:
            width, height = img.size
    except (SyntaxError, OSError, ValueError) as e:
        raise DecodeError(fmt, e) from e

    if len(data) < len(PNG_SIGNATURE) + IHDR.size:
        raise DecodeError(fmt, "missing PNG header")

    length, chunk, _, _, depth, color = IHDR.unpack_from(data, 8)
    if chunk != b"IHDR" or length != 13:
        raise DecodeError(fmt, "first chunk is not IHDR")

    if color not in PNG_CHANNELS:
        raise DecodeError(fmt, "unknown color type {}".format(color))
    if depth not in PNG_SAMPLE_DEPTHS[color]:
        raise DecodeError(fmt,
            "unsupported bit depth {} for color type {}".format(depth, color))

    return ImageMetadata(
        mime=fmt.mime,
        width=width,
        height=height,
        bit_depth=PNG_CHANNELS[color] * depth,
        data=data,
    )


# pixel format -> (channels, bits per channel)
JPEG_PIXEL_FORMATS = {
    "L8": (1, 8),
    "L16": (1, 16),
    "RGB24": (3, 8),
    "CMYK32": (4, 8),
}

# (components, sample precision) -> pixel format, 12 bit luma widens to 16
JPEG_FRAMES = {
    (1, 8): "L8",
    (1, 12): "L16",
    (1, 16): "L16",
    (3, 8): "RGB24",
    (4, 8): "CMYK32",
}

# SOF0-SOF15 minus DHT (C4), JPG (C8) and DAC (CC)
JPEG_SOF = frozenset(range(0xC0, 0xD0)) - {0xC4, 0xC8, 0xCC}

# markers without a length field
JPEG_STANDALONE = frozenset(range(0xD0, 0xD8)) | {0x01}


def _jpeg_frame(data):
    """
    Walk the marker segments from SOI to the first frame header and
    return (precision, height, width, components).
    """
    if data[:2] != b"\xff\xd8":
        raise ValueError("missing SOI marker")

    pos = 2
    end = len(data)

    while True:
        if pos >= end:
            raise ValueError("truncated before frame header")
        if data[pos] != 0xFF:
            raise ValueError("expected marker at offset {}".format(pos))

        # any number of 0xFF fill bytes may precede a marker
        while pos < end and data[pos] == 0xFF:
            pos += 1
        if pos >= end:
            raise ValueError("truncated marker")

        marker = data[pos]
        pos += 1

        if marker in JPEG_STANDALONE:
            continue
        if marker in (0xD9, 0xDA):
            raise ValueError("no frame header before {}".format(
                "EOI" if marker == 0xD9 else "SOS"))

        if pos + 2 > end:
            raise ValueError("truncated segment length")
        length, = struct.unpack_from(">H", data, pos)
        if length < 2 or pos + length > end:
            raise ValueError("truncated segment 0x{:02X}".format(marker))

        if marker in JPEG_SOF:
            if length < 8:
                raise ValueError("short frame header")
            return struct.unpack_from(">BHHB", data, pos + 2)

        pos += length


def _jpeg_metadata(data) -> ImageMetadata:
    fmt = ImageFormat.JPEG

    try:
        precision, height, width, components = _jpeg_frame(data)
    except ValueError as e:
        raise DecodeError(fmt, e) from e

    if width == 0 or height == 0:
        raise DecodeError(fmt, "image has no size ({}x{})".format(width, height))

    try:
        pixel_format = JPEG_FRAMES[(components, precision)]
    except KeyError:
        raise DecodeError(fmt,
            "unsupported frame: {} components at {} bits".format(
                components, precision)) from None

    channels, bits = JPEG_PIXEL_FORMATS[pixel_format]

    return ImageMetadata(
        mime=fmt.mime,
        width=width,
        height=height,
        bit_depth=channels * bits,
        data=data,
    )


def extract(data, fmt: ImageFormat) -> ImageMetadata:
    """
    Read MIME type, size and bits per pixel from the headers of `data`.

    Pixel data is never decoded. Raises DecodeError if the container is
    broken or uses a color/sample layout we don't know.
    """
    if fmt is ImageFormat.PNG:
        return _png_metadata(data)
    elif fmt is ImageFormat.JPEG:
        return _jpeg_metadata(data)
    else:
        raise ValueError("Unsupported image format: {}".format(fmt))

# serialize METADATA_BLOCK_PICTURE records
#
# https://xiph.org/flac/format.html#metadata_block_picture
# https://wiki.xiph.org/VorbisComment#METADATA_BLOCK_PICTURE

import io
import enum
import struct
import base64

U32_MAX = 0xFFFFFFFF

# ID3v2 APIC picture types
COVER_FRONT = 3
PICTURE_TYPES = range(0, 21)

FFMETADATA_HEADER = b";FFMETADATA1\nMETADATA_BLOCK_PICTURE="


class EncodeError(Exception):
    pass


def _u32(name, value):
    if not 0 <= value <= U32_MAX:
        raise EncodeError("{} doesn't fit in 32 bits: {}".format(name, value))
    return value


def write_picture(meta, fp, picture_type=COVER_FRONT, description=""):
    """
    Write the METADATA_BLOCK_PICTURE record for `meta` to the binary file
    object `fp`.

    Every field is checked before the first write, so an EncodeError
    leaves `fp` untouched. The image data is written as is.
    """
    if picture_type not in PICTURE_TYPES:
        raise EncodeError("Invalid picture type: {}".format(picture_type))

    mime = meta.mime.encode("ascii")
    desc = description.encode("utf-8")

    header = struct.pack(">II", picture_type, _u32("MIME type length", len(mime)))
    header += mime
    header += struct.pack(">I", _u32("description length", len(desc)))
    header += desc
    header += struct.pack(">IIIII",
        _u32("width", meta.width),
        _u32("height", meta.height),
        _u32("bit depth", meta.bit_depth),
        0,  # index color count, not used for png/jpg
        _u32("data length", len(meta.data)))

    fp.write(header)
    fp.write(meta.data)


def picture_block(meta, picture_type=COVER_FRONT, description="") -> bytes:
    buf = io.BytesIO()
    write_picture(meta, buf, picture_type, description)
    return buf.getvalue()


class OutputFormat(enum.Enum):
    BINARY = "binary"
    BASE64 = "base64"
    FFMETADATA = "ffmetadata"


def render(block: bytes, fmt: OutputFormat) -> bytes:
    """Wrap a picture record for output."""
    if fmt is OutputFormat.BINARY:
        return block

    # ffmetadata is just base64 with a header in front
    text = base64.b64encode(block) + b"\n"
    if fmt is OutputFormat.FFMETADATA:
        return FFMETADATA_HEADER + text
    return text

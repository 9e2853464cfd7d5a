#!/bin/env python

# convert image to METADATA_BLOCK_PICTURE
#
# ffmpeg can't attach cover art to ogg with -disposition:v attached_pic,
# but it reads this tag back just fine, e.g.
#   ffmpeg -i in.flac -i <(mkpblock cover.png) -map_metadata 1 out.ogg

import os
import sys
import getopt

from imagemeta import ImageFormat, DecodeError, extract
from pblock import OutputFormat, EncodeError, COVER_FRONT, picture_block, render

EXTENSIONS = {
    "png": ImageFormat.PNG,
    "jpg": ImageFormat.JPEG,
    "jpeg": ImageFormat.JPEG,
}

OUTPUT_OPTS = {
    "-f": OutputFormat.FFMETADATA,
    "--ffmetadata": OutputFormat.FFMETADATA,
    "-b": OutputFormat.BINARY,
    "--binary": OutputFormat.BINARY,
    "-B": OutputFormat.BASE64,
    "--base64": OutputFormat.BASE64,
}

IMAGE_OPTS = {
    "-p": ImageFormat.PNG,
    "--png": ImageFormat.PNG,
    "-j": ImageFormat.JPEG,
    "--jpeg": ImageFormat.JPEG,
}


class FormatError(Exception):
    pass


def usage(file=None):
    print(
        """
Usage: mkpblock [OPTIONS] IMAGE
Known options are:
  -h,--help               : print this usage
  -o,--output=<PATH>      : output file, omit or use - for stdout
  -f,--ffmetadata         : output in FFMETADATA1 ini format (default)
  -b,--binary             : output in raw binary format
  -B,--base64             : output in raw base64 format
  -p,--png                : read IMAGE as PNG whatever its name
  -j,--jpeg               : read IMAGE as JPEG whatever its name
  -t,--type=<TYPE>        : IDV3v2 picture type 0-20 (3, cover front)
  -d,--description=<TEXT> : picture description (empty)
  -v,--verbose            : print the image metadata to stderr
    """.strip(),
        file=file or sys.stderr,
    )


def resolve_format(path, override=None) -> ImageFormat:
    """
    Pick the image format, an explicit override wins over the file suffix.
    """
    if override is not None:
        return override

    ext = os.path.splitext(path)[1][1:].lower()
    try:
        return EXTENSIONS[ext]
    except KeyError:
        raise FormatError(
            "Can't tell the image format of '{}', use --png or --jpeg".format(path)
        ) from None


def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]

    try:
        opts, args = getopt.gnu_getopt(argv, "ho:fbBpjt:d:v", [
            "help", "output=", "ffmetadata", "binary", "base64",
            "png", "jpeg", "type=", "description=", "verbose"])
    except getopt.GetoptError as e:
        print(e, file=sys.stderr)
        usage()
        return 1

    out_fmt  = None
    img_fmt  = None
    out_path = None
    idv3     = COVER_FRONT
    desc     = ""
    verbose  = False

    for opt, arg in opts:
        if opt in ("-h", "--help"):
            usage(sys.stdout)
            return 0

        elif opt in ("-o", "--output"):
            out_path = arg

        elif opt in OUTPUT_OPTS:
            fmt = OUTPUT_OPTS[opt]
            if out_fmt not in (None, fmt):
                print("Only one output format may be given.", file=sys.stderr)
                return 1
            out_fmt = fmt

        elif opt in IMAGE_OPTS:
            fmt = IMAGE_OPTS[opt]
            if img_fmt not in (None, fmt):
                print("Only one of --png and --jpeg may be given.", file=sys.stderr)
                return 1
            img_fmt = fmt

        elif opt in ("-t", "--type"):
            try:
                idv3 = int(arg.strip())
            except ValueError:
                idv3 = -1
            if (idv3 < 0) or (idv3 > 20):
                print("Invalid picture type '{}'.".format(arg), file=sys.stderr)
                usage()
                return 1

        elif opt in ("-d", "--description"):
            desc = arg.strip()

        elif opt in ("-v", "--verbose"):
            verbose = True

    if len(args) != 1:
        usage()
        return 1

    if out_fmt is None:
        out_fmt = OutputFormat.FFMETADATA

    file = args[0]

    try:
        img_fmt = resolve_format(file, img_fmt)
    except FormatError as e:
        print("Error: {}".format(e), file=sys.stderr)
        return 1

    # read file to bytes and pull out the metadata
    try:
        with open(file, "rb") as fp:
            image_bytes = fp.read()
    except OSError as e:
        print("Error: can't read '{}': {}".format(file, e), file=sys.stderr)
        return 1

    try:
        meta = extract(image_bytes, img_fmt)
    except DecodeError as e:
        print("Error: '{}': {}".format(file, e), file=sys.stderr)
        return 1

    if verbose:
        print("Parsed image:", file=sys.stderr)
        print("  File      : '{}'".format(file), file=sys.stderr)
        print("  MIME      : {}".format(meta.mime), file=sys.stderr)
        print("  Size      : {}x{}".format(meta.width, meta.height), file=sys.stderr)
        print("  Bit depth : {}".format(meta.bit_depth), file=sys.stderr)
        print("  Data      : {} bytes".format(len(meta.data)), file=sys.stderr)

    # build everything before touching the output so errors leave nothing behind
    try:
        out = render(picture_block(meta, idv3, desc), out_fmt)
    except EncodeError as e:
        print("Error: can't encode '{}': {}".format(file, e), file=sys.stderr)
        return 1

    # write output
    if out_path in (None, "-"):
        try:
            sys.stdout.buffer.write(out)
            sys.stdout.buffer.flush()
        except OSError as e:
            print("Error: can't write to stdout: {}".format(e), file=sys.stderr)
            return 1
        return 0

    try:
        fp = open(out_path, "wb")
    except OSError as e:
        print("Error: can't create '{}': {}".format(out_path, e), file=sys.stderr)
        return 1

    try:
        with fp:
            fp.write(out)
    except OSError as e:
        print("Error: can't write '{}': {}".format(out_path, e), file=sys.stderr)
        return 1

    return 0


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()

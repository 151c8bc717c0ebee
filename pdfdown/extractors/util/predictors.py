"""
Stream Decompression and Predictor Reversal
===========================================

Image streams compressed with /FlateDecode are inflated here directly with
zlib instead of through ``StreamObject.get_data()``. pypdf applies the
/DecodeParms predictor during its own decode and some producers (pandoc via
xdvipdfmx, for example) write row lengths that make that step corrupt the
pixels. Inflating first and reversing the predictor ourselves lets us check
the inflated length against the image geometry before touching the data.

Supported predictors
--------------------
- 2: TIFF horizontal differencing, applied only when the inflated length is
  exactly ``width * height * channels * bytes_per_sample``.
- 10-15: PNG row filters (None, Sub, Up, Average, Paeth), applied only when
  the inflated length is exactly ``height * (row_bytes + 1)``.

Anything else returns the inflated bytes unchanged.
"""

import logging
import zlib
from typing import Any, Optional

from pypdf.generic import ArrayObject, NameObject

from pdfdown.extractors.util.pdf_objects import get_int, lookup, raw_lookup, resolve_dict

logger = logging.getLogger(__name__)

PNG_PREDICTORS = range(10, 16)
TIFF_PREDICTOR = 2


def raw_inflate(data: bytes) -> Optional[bytes]:
    """Inflate zlib-wrapped data, falling back to a bare deflate stream."""
    try:
        return zlib.decompress(data)
    except zlib.error:
        pass
    try:
        return zlib.decompress(data, -zlib.MAX_WBITS)
    except zlib.error:
        return None


def paeth_predictor(a: int, b: int, c: int) -> int:
    pa = abs(b - c)
    pb = abs(a - c)
    pc = abs(a + b - 2 * c)
    if pa <= pb and pa <= pc:
        return a
    if pb <= pc:
        return b
    return c


def apply_png_predictor(data: bytes, bytes_per_pixel: int, row_bytes: int) -> Optional[bytes]:
    """
    Reverse PNG row filtering.

    Each source row is one filter-type byte followed by ``row_bytes`` bytes.
    Returns None when the data is not a whole number of rows or a row uses an
    unknown filter type.
    """
    src_row_len = row_bytes + 1
    if src_row_len <= 0 or len(data) % src_row_len:
        return None

    output = bytearray()
    prev_row = bytearray(row_bytes)
    bpp = bytes_per_pixel
    for row_start in range(0, len(data), src_row_len):
        filter_type = data[row_start]
        row = bytearray(data[row_start + 1 : row_start + src_row_len])

        if filter_type == 0:
            pass
        elif filter_type == 1:
            for i in range(bpp, row_bytes):
                row[i] = (row[i] + row[i - bpp]) & 0xFF
        elif filter_type == 2:
            for i in range(row_bytes):
                row[i] = (row[i] + prev_row[i]) & 0xFF
        elif filter_type == 3:
            for i in range(min(bpp, row_bytes)):
                row[i] = (row[i] + prev_row[i] // 2) & 0xFF
            for i in range(bpp, row_bytes):
                row[i] = (row[i] + (row[i - bpp] + prev_row[i]) // 2) & 0xFF
        elif filter_type == 4:
            for i in range(min(bpp, row_bytes)):
                row[i] = (row[i] + paeth_predictor(0, prev_row[i], 0)) & 0xFF
            for i in range(bpp, row_bytes):
                row[i] = (
                    row[i] + paeth_predictor(row[i - bpp], prev_row[i], prev_row[i - bpp])
                ) & 0xFF
        else:
            return None

        output.extend(row)
        prev_row = row

    return bytes(output)


def apply_tiff_predictor2(data: bytes, bytes_per_pixel: int, row_bytes: int) -> bytes:
    """Reverse TIFF horizontal differencing row by row."""
    out = bytearray(data)
    if row_bytes <= 0:
        return bytes(out)
    for start in range(0, len(out) - row_bytes + 1, row_bytes):
        for i in range(start + bytes_per_pixel, start + row_bytes):
            out[i] = (out[i] + out[i - bytes_per_pixel]) & 0xFF
    return bytes(out)


def resolve_decode_parms(stream: Any):
    """Return the /DecodeParms dictionary, or the first one of a parms array."""
    parms = raw_lookup(stream, "/DecodeParms")
    if parms is None:
        return None
    direct = resolve_dict(parms)
    if direct is not None:
        return direct
    parms = lookup(stream, "/DecodeParms")
    if isinstance(parms, ArrayObject):
        for item in parms:
            found = resolve_dict(item)
            if found is not None:
                return found
    return None


def uses_flate(stream: Any) -> bool:
    filters = lookup(stream, "/Filter")
    if isinstance(filters, NameObject):
        return filters == "/FlateDecode"
    if isinstance(filters, ArrayObject):
        return any(isinstance(item, NameObject) and item == "/FlateDecode" for item in filters)
    return False


def library_decode(stream: Any) -> bytes:
    raw = getattr(stream, "_data", b"") or b""
    try:
        return stream.get_data()
    except Exception as exc:
        logger.debug("pypdf failed to decode stream, using raw bytes: %s", exc)
        return raw


def decompress_stream_content(
    stream: Any, width: int, height: int, channels: int, bits_per_component: int
) -> bytes:
    """
    Return the pixel bytes of a non-DCT/JPX image stream.

    Flate streams are inflated with zlib (pypdf decoding and then raw bytes
    serve as fallbacks), other filters pass their raw bytes through. The
    predictor named in /DecodeParms is reversed when the inflated length
    matches the geometry it expects.
    """
    bytes_per_sample = 2 if bits_per_component > 8 else 1
    row_bytes = width * channels * bits_per_component // 8
    expected = width * height * channels * bytes_per_sample
    predicted_len = height * (row_bytes + 1)

    raw = getattr(stream, "_data", b"") or b""
    if uses_flate(stream):
        content = raw_inflate(raw)
        if content is None:
            content = library_decode(stream)
    else:
        content = raw

    parms = resolve_decode_parms(stream)
    if parms is None:
        return content

    predictor = get_int(parms, "/Predictor") or 1
    bpp = max(channels * bits_per_component // 8, 1)

    if predictor == TIFF_PREDICTOR and len(content) == expected:
        return apply_tiff_predictor2(content, bpp, row_bytes)

    if predictor in PNG_PREDICTORS and len(content) == predicted_len:
        unfiltered = apply_png_predictor(content, bpp, row_bytes)
        if unfiltered is not None:
            return unfiltered
        logger.debug("Unknown PNG filter type, keeping unreversed bytes")

    return content

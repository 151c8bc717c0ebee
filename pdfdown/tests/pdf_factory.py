"""
Builds small PDF files byte by byte for tests.

Objects are numbered in the order they are added; object 1 is always the
catalog and object 2 the root /Pages node.
"""

import io
import zlib
from typing import List, Optional, Sequence, Tuple

from PIL import Image

HELVETICA = b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica /Encoding /WinAnsiEncoding >>"


def pdf_string(text: str) -> bytes:
    escaped = text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")
    return b"(" + escaped.encode("latin-1") + b")"


def text_content(lines: Sequence[str], font: str = "F1") -> bytes:
    """Content stream showing one line of text per entry, top to bottom."""
    parts = [f"BT /{font} 12 Tf 72 720 Td 14 TL".encode()]
    for line in lines:
        parts.append(pdf_string(line) + b" Tj T*")
    parts.append(b"ET")
    return b"\n".join(parts)


def paint_image(name: str, width: int = 50, height: int = 50) -> bytes:
    return f"q {width} 0 0 {height} 0 0 cm /{name} Do Q".encode()


class PdfBuilder:
    CATALOG = 1
    PAGES = 2

    def __init__(self):
        self._objects: List[Optional[bytes]] = [None, None]
        self._kids: List[int] = []
        self.font = self.add(HELVETICA)

    def reserve(self) -> int:
        self._objects.append(None)
        return len(self._objects)

    def add(self, body: bytes) -> int:
        self._objects.append(body)
        return len(self._objects)

    def set(self, num: int, body: bytes) -> None:
        self._objects[num - 1] = body

    def add_stream(self, entries: bytes, data: bytes) -> int:
        return self.add(stream_body(entries, data))

    def add_page(
        self,
        content: bytes = b"",
        *,
        xobjects: Optional[dict] = None,
        extra: bytes = b"",
        resources: Optional[bytes] = None,
        with_resources: bool = True,
        contents: Optional[bytes] = None,
    ) -> int:
        """
        Add a page; ``xobjects`` maps resource names to object numbers.

        ``contents`` replaces the generated /Contents value verbatim.
        """
        if contents is None:
            contents = ref(self.add_stream(b"", content))
        if resources is None and with_resources:
            xobject_entries = b""
            if xobjects:
                refs = b" ".join(
                    f"/{name} {num} 0 R".encode() for name, num in xobjects.items()
                )
                xobject_entries = b" /XObject << " + refs + b" >>"
            resources = (
                b"<< /Font << /F1 " + ref(self.font) + b" >>" + xobject_entries + b" >>"
            )
        body = b"<< /Type /Page /Parent 2 0 R /Contents " + contents
        if resources is not None:
            body += b" /Resources " + resources
        body += b" " + extra + b" >>"
        num = self.add(body)
        self._kids.append(num)
        return num

    def build(
        self,
        *,
        pages_extra: bytes = b" /MediaBox [0 0 612 792]",
        info: Optional[int] = None,
        trailer_extra: bytes = b"",
        version: str = "1.7",
    ) -> bytes:
        kids = b" ".join(ref(k) for k in self._kids)
        self.set(
            self.PAGES,
            b"<< /Type /Pages /Kids [" + kids + b"] /Count "
            + str(len(self._kids)).encode()
            + pages_extra
            + b" >>",
        )
        self.set(self.CATALOG, b"<< /Type /Catalog /Pages 2 0 R >>")

        out = io.BytesIO()
        out.write(f"%PDF-{version}\n".encode() + b"%\xe2\xe3\xcf\xd3\n")
        offsets = []
        for num, body in enumerate(self._objects, start=1):
            if body is None:
                raise ValueError(f"object {num} was reserved but never set")
            offsets.append(out.tell())
            out.write(f"{num} 0 obj\n".encode() + body + b"\nendobj\n")

        xref_offset = out.tell()
        out.write(f"xref\n0 {len(self._objects) + 1}\n".encode())
        out.write(b"0000000000 65535 f \n")
        for offset in offsets:
            out.write(b"%010d 00000 n \n" % offset)

        trailer = f"<< /Size {len(self._objects) + 1} /Root 1 0 R".encode()
        if info is not None:
            trailer += b" /Info " + ref(info)
        trailer += trailer_extra + b" >>"
        out.write(b"trailer\n" + trailer + b"\n")
        out.write(f"startxref\n{xref_offset}\n%%EOF\n".encode())
        return out.getvalue()


def ref(num: int) -> bytes:
    return f"{num} 0 R".encode()


def stream_body(entries: bytes, data: bytes) -> bytes:
    return (
        b"<< " + entries + b" /Length " + str(len(data)).encode() + b" >>\nstream\n"
        + data
        + b"\nendstream"
    )


def image_entries(
    width: int,
    height: int,
    color_space: bytes = b"/DeviceRGB",
    bits: int = 8,
    extra: bytes = b"",
) -> bytes:
    return (
        b"/Type /XObject /Subtype /Image /Width %d /Height %d /ColorSpace %s /BitsPerComponent %d "
        % (width, height, color_space, bits)
        + extra
    )


def solid_rgb(width: int, height: int, color: Tuple[int, int, int]) -> bytes:
    return bytes(color) * (width * height)


def png_filter_rows(data: bytes, row_bytes: int, bpp: int, filter_type: int) -> bytes:
    """Apply one PNG row filter to every row (encoder side)."""

    def paeth(a, b, c):
        p = a + b - c
        pa, pb, pc = abs(p - a), abs(p - b), abs(p - c)
        if pa <= pb and pa <= pc:
            return a
        if pb <= pc:
            return b
        return c

    out = bytearray()
    prev = bytes(row_bytes)
    for start in range(0, len(data), row_bytes):
        row = data[start : start + row_bytes]
        out.append(filter_type)
        for i, value in enumerate(row):
            left = row[i - bpp] if i >= bpp else 0
            up = prev[i]
            up_left = prev[i - bpp] if i >= bpp else 0
            if filter_type == 0:
                predicted = 0
            elif filter_type == 1:
                predicted = left
            elif filter_type == 2:
                predicted = up
            elif filter_type == 3:
                predicted = (left + up) // 2
            else:
                predicted = paeth(left, up, up_left)
            out.append((value - predicted) & 0xFF)
        prev = row
    return bytes(out)


def jpeg_bytes(width: int, height: int, color: Tuple[int, int, int]) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="JPEG", quality=95)
    return buffer.getvalue()


def flate(data: bytes) -> bytes:
    return zlib.compress(data)


def single_page_pdf(lines: Sequence[str] = ("Hello World",)) -> bytes:
    builder = PdfBuilder()
    builder.add_page(text_content(lines))
    return builder.build()


def text_pdf(pages: Sequence[Sequence[str]], **build_kwargs) -> bytes:
    builder = PdfBuilder()
    for lines in pages:
        builder.add_page(text_content(lines))
    return builder.build(**build_kwargs)

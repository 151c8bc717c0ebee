"""
PDF Metadata Extractor
======================

Document-level facts: header version, linearization flag, the trailer's
/Info strings (dates converted to ISO 8601) and the page geometry summary.

Page boxes
----------
Most documents use one page size throughout, so listing a box per page is
mostly noise. Pages are grouped instead by their effective box (CropBox,
else MediaBox, else an all-zero Unknown box), keyed on the exact float bit
patterns of the normalized rectangle plus the box type. The group with the
most pages is the dominant one and carries ``pages=None``; every other group
lists its page numbers. On a tie the group formed last wins.
"""

import logging
import struct
from typing import Any, Dict, List, Optional, Tuple

from pypdf import PdfReader
from pypdf.generic import IndirectObject

from pdfdown.extractors.data_types import BoxType, PageBox, PdfMeta
from pdfdown.extractors.util.pdf_objects import (
    decode_text_string,
    get_inherited_page_box,
    lookup,
    raw_lookup,
    resolve_dict,
)

logger = logging.getLogger(__name__)

_BOX_TYPE_ORDER = {BoxType.CROP_BOX: 0, BoxType.MEDIA_BOX: 1, BoxType.UNKNOWN: 2}


def pdf_date_to_iso8601(raw: str) -> str:
    """
    Convert a PDF date (``D:YYYYMMDDHHmmSS+HH'mm'``) to ISO 8601.

    Everything after the year is optional. Input with fewer than four
    characters once the ``D:`` prefix is removed is returned unchanged.
    """
    s = raw[2:] if raw.startswith("D:") else raw
    if len(s) < 4:
        return raw

    def part(start: int, end: int, default: str) -> str:
        return s[start:end] if len(s) >= end else default

    yyyy = s[:4]
    mm = part(4, 6, "01")
    dd = part(6, 8, "01")
    hh = part(8, 10, "00")
    minute = part(10, 12, "00")
    sec = part(12, 14, "00")

    tz_part = s[14:]
    if not tz_part:
        tz = ""
    elif tz_part.startswith("Z"):
        tz = "Z"
    else:
        cleaned = tz_part.replace("'", "")
        if len(cleaned) >= 3:
            tzm = cleaned[3:5] if len(cleaned) >= 5 else "00"
            tz = f"{cleaned[0]}{cleaned[1:3]}:{tzm}"
        else:
            tz = ""

    return f"{yyyy}-{mm}-{dd}T{hh}:{minute}:{sec}{tz}"


def _info_dictionary(reader: PdfReader):
    info = raw_lookup(reader.trailer, "/Info")
    if not isinstance(info, IndirectObject):
        return None
    return resolve_dict(info)


def _info_string(info: Any, key: str) -> Optional[str]:
    return decode_text_string(lookup(info, key))


def _info_date(info: Any, key: str) -> Optional[str]:
    value = _info_string(info, key)
    return None if value is None else pdf_date_to_iso8601(value)


def pdf_version(reader: PdfReader) -> str:
    header = reader.pdf_header or ""
    return header[len("%PDF-") :] if header.startswith("%PDF-") else header


def is_linearized(reader: PdfReader) -> bool:
    return "/Linearized" in reader.trailer


def _effective_box(page: Any) -> Tuple[BoxType, List[float]]:
    rect = get_inherited_page_box(page, "/CropBox")
    if rect is not None:
        return BoxType.CROP_BOX, rect
    rect = get_inherited_page_box(page, "/MediaBox")
    if rect is not None:
        return BoxType.MEDIA_BOX, rect
    return BoxType.UNKNOWN, [0.0, 0.0, 0.0, 0.0]


def _float_bits(value: float) -> int:
    return struct.unpack("<Q", struct.pack("<d", value))[0]


def extract_page_boxes(pages: List[Any]) -> List[PageBox]:
    groups: List[PageBox] = []
    page_lists: List[List[int]] = []
    key_to_idx: Dict[tuple, int] = {}

    for page_num, page in enumerate(pages, start=1):
        box_type, rect = _effective_box(page)
        left, right = sorted((rect[0], rect[2]))
        bottom, top = sorted((rect[1], rect[3]))
        key = (
            _float_bits(left),
            _float_bits(bottom),
            _float_bits(right),
            _float_bits(top),
            _BOX_TYPE_ORDER[box_type],
        )

        idx = key_to_idx.get(key)
        if idx is None:
            key_to_idx[key] = len(groups)
            groups.append(
                PageBox(
                    left=left,
                    bottom=bottom,
                    right=right,
                    top=top,
                    width=right - left,
                    height=top - bottom,
                    box_type=box_type,
                )
            )
            page_lists.append([page_num])
        else:
            page_lists[idx].append(page_num)

    dominant_idx = 0
    for idx, page_nums in enumerate(page_lists):
        if len(page_nums) >= len(page_lists[dominant_idx]):
            dominant_idx = idx

    for idx, (group, page_nums) in enumerate(zip(groups, page_lists)):
        group.page_count = len(page_nums)
        group.pages = None if idx == dominant_idx else page_nums
    return groups


def extract_metadata(reader: PdfReader) -> PdfMeta:
    pages = list(reader.pages)
    info = _info_dictionary(reader)
    return PdfMeta(
        page_count=len(pages),
        version=pdf_version(reader),
        is_linearized=is_linearized(reader),
        creator=_info_string(info, "/Creator"),
        producer=_info_string(info, "/Producer"),
        creation_date=_info_date(info, "/CreationDate"),
        modification_date=_info_date(info, "/ModDate"),
        page_boxes=extract_page_boxes(pages),
    )

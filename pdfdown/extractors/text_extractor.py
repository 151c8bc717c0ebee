"""
PDF Text Extractor
==================

Native per-page text via ``PageObject.extract_text()`` plus two clean-up
steps that work on the extracted lines.

Footer artifacts
----------------
Chromium's Skia PDF backend writes page footers such as ``1 / 38`` as two or
three separate text operations. pypdf emits them in content-stream order so
every page ends up with an orphaned ``/`` line followed by a line holding
only the total page count. ``strip_footer_artifacts`` drops exactly that
pair and nothing else.

Header and footer detection
---------------------------
Running headers and footers repeat on most pages with only the page number
changing. ``detect_headers_footers`` compares the first and last three lines
of every page after replacing digit runs with ``<NUM>``; a position counts
as header (or footer) when one normalized value shows up on at least 60% of
the pages. Documents with fewer than three pages are never split.
"""

import logging
import math
import re
from collections import Counter
from typing import Any, List, Optional, Sequence

from pypdf import PdfReader

from pdfdown.extractors.data_types import PageText, StructuredPageText
from pdfdown.extractors.util.worker_pool import map_unordered

logger = logging.getLogger(__name__)

HEADER_FOOTER_MAX_LINES = 3
HEADER_FOOTER_THRESHOLD = 0.6
MIN_PAGES_FOR_DETECTION = 3
_DIGIT_RUN = re.compile(r"[0-9]+")


def split_lines(text: str) -> List[str]:
    """Split on ``\\n`` dropping a trailing empty line and any ``\\r`` line ends."""
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def _strip_once(text: str, page_count_str: str) -> str:
    lines = split_lines(text)
    if len(lines) < 2:
        return text
    skip = [False] * len(lines)
    for i in range(len(lines) - 1):
        if lines[i].strip() == "/" and lines[i + 1].strip() == page_count_str:
            skip[i] = True
            skip[i + 1] = True
    if not any(skip):
        return text
    return "\n".join(line for line, dropped in zip(lines, skip) if not dropped)


def strip_footer_artifacts(text: str, page_count_str: str) -> str:
    """
    Remove ``/`` + page-count line pairs left over from split page footers.

    Text without such a pair is returned unchanged. Removal repeats until no
    pair is left, so the result is stable under another application.
    """
    current = text
    while True:
        stripped = _strip_once(current, page_count_str)
        if stripped == current:
            return stripped
        current = stripped


def normalize_header_footer_line(line: str) -> str:
    return _DIGIT_RUN.sub("<NUM>", line.strip())


def _position_repeats(values: List[str], threshold: int) -> bool:
    counts = Counter(value for value in values if value)
    return any(count >= threshold for count in counts.values())


def detect_headers_footers(pages: Sequence[PageText]) -> List[StructuredPageText]:
    if len(pages) < MIN_PAGES_FOR_DETECTION:
        return [StructuredPageText(page=p.page, body=p.text) for p in pages]

    threshold = math.ceil(len(pages) * HEADER_FOOTER_THRESHOLD)
    page_lines = [split_lines(p.text) for p in pages]

    header_count = 0
    for pos in range(HEADER_FOOTER_MAX_LINES):
        values = [
            normalize_header_footer_line(lines[pos])
            for lines in page_lines
            if len(lines) > pos
        ]
        if not _position_repeats(values, threshold):
            break
        header_count = pos + 1

    footer_count = 0
    for pos in range(HEADER_FOOTER_MAX_LINES):
        values = []
        for lines in page_lines:
            idx = len(lines) - 1 - pos
            # lines already claimed by the header are not footer candidates
            if idx >= header_count:
                values.append(normalize_header_footer_line(lines[idx]))
        if not _position_repeats(values, threshold):
            break
        footer_count = pos + 1

    structured = []
    for page, lines in zip(pages, page_lines):
        total = len(lines)
        h_end = min(header_count, total)
        f_start = max(total - footer_count, h_end) if footer_count else total
        structured.append(
            StructuredPageText(
                page=page.page,
                header="\n".join(lines[:h_end]),
                body="\n".join(lines[h_end:f_start]),
                footer="\n".join(lines[f_start:]),
            )
        )
    return structured


def extract_native_text(page: Any, page_num: int) -> str:
    """Best-effort pypdf text for one page; failures give an empty string."""
    try:
        return page.extract_text() or ""
    except Exception as e:
        logger.debug("Failed to extract text from page %d: %s", page_num, e)
        return ""


def extract_text_per_page(
    reader: PdfReader, max_workers: Optional[int] = None
) -> List[PageText]:
    pages = list(reader.pages)
    page_count_str = str(len(pages))

    def _extract(entry) -> PageText:
        page_num, page = entry
        raw = extract_native_text(page, page_num)
        return PageText(page=page_num, text=strip_footer_artifacts(raw, page_count_str))

    results = map_unordered(
        _extract, enumerate(pages, start=1), max_workers=max_workers
    )
    results.sort(key=lambda p: p.page)
    return results


def extract_structured_text_per_page(
    reader: PdfReader, max_workers: Optional[int] = None
) -> List[StructuredPageText]:
    return detect_headers_footers(extract_text_per_page(reader, max_workers))

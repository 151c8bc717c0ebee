"""
OCR Fallback Text Extractor
===========================

Pages whose native text is too short (scanned pages, image-only slides) are
run through Tesseract instead.

Per page the native pypdf text is extracted and cleaned of footer artifacts.
If it has at least ``min_text_length`` non-whitespace characters it is kept
and tagged ``TextSource.NATIVE``. Otherwise every image painted on the page
is decoded (soft masks are skipped, Tesseract works on RGB), OCR'd once and
the non-empty results are joined with newlines, tagged ``TextSource.OCR``.

Tessdata discovery
------------------
``TESSDATA_PREFIX`` wins when set. Otherwise ``tesseract --list-langs`` is
run once and the first double-quoted path in its output is used, for example
``List of available languages in "/usr/share/tesseract-ocr/5/tessdata/" (3):``.
When neither works Tesseract falls back to its compiled-in default.

Concurrency
-----------
Pages are spread over a bounded pool sized by ``OcrOptions.max_threads``
(clamped to ``[1, cpu_count]``, default 4). Pools are cached per size for the
lifetime of the process. Images within one page are OCR'd sequentially.
"""

import logging
import os
import subprocess
import threading
from dataclasses import dataclass
from typing import Any, List, Optional

import pytesseract
from PIL import Image
from pypdf import PdfReader

from pdfdown.extractors.data_types import (
    OcrPageText,
    OcrStructuredPageText,
    PageText,
    TextSource,
)
from pdfdown.extractors.image_extractor import decode_page_images
from pdfdown.extractors.text_extractor import (
    detect_headers_footers,
    extract_native_text,
    strip_footer_artifacts,
)
from pdfdown.extractors.util.worker_pool import (
    get_ocr_pool,
    map_unordered,
    normalize_max_threads,
)

logger = logging.getLogger(__name__)

TESSDATA_ENV_VAR = "TESSDATA_PREFIX"
LIST_LANGS_TIMEOUT_SECONDS = 30


@dataclass(frozen=True)
class OcrOptions:
    """
    Settings for OCR fallback.

    ``max_threads`` of None means the default pool size (4, capped at the
    number of CPUs).
    """

    lang: str = "eng"
    min_text_length: int = 1
    max_threads: Optional[int] = None


DEFAULT_OCR_OPTIONS = OcrOptions()

_UNSET = object()
_tessdata_prefix: Any = _UNSET
_tessdata_lock = threading.Lock()


def _parse_quoted_path(text: str) -> Optional[str]:
    start = text.find('"')
    if start < 0:
        return None
    end = text.find('"', start + 1)
    if end < 0:
        return None
    return text[start + 1 : end]


def _detect_tessdata_prefix() -> Optional[str]:
    override = os.environ.get(TESSDATA_ENV_VAR)
    if override is not None:
        return override

    try:
        completed = subprocess.run(
            [pytesseract.pytesseract.tesseract_cmd, "--list-langs"],
            capture_output=True,
            timeout=LIST_LANGS_TIMEOUT_SECONDS,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("Could not run tesseract to locate tessdata: %s", exc)
        return None

    # tesseract prints the tessdata header on stderr
    stderr = completed.stderr.decode("utf-8", errors="replace")
    output = stderr if '"' in stderr else completed.stdout.decode("utf-8", errors="replace")
    return _parse_quoted_path(output)


def get_tessdata_prefix() -> Optional[str]:
    """Return the tessdata directory, detecting it once per process."""
    global _tessdata_prefix
    with _tessdata_lock:
        if _tessdata_prefix is _UNSET:
            _tessdata_prefix = _detect_tessdata_prefix()
            logger.debug("Using tessdata directory: %s", _tessdata_prefix)
        return _tessdata_prefix


def ocr_image(image: Image.Image, lang: str, tessdata: Optional[str] = None) -> str:
    """Run Tesseract on one image; engine failures give an empty string."""
    config = f'--tessdata-dir "{tessdata}"' if tessdata else ""
    try:
        text = pytesseract.image_to_string(image.convert("RGB"), lang=lang, config=config)
    except (
        pytesseract.TesseractError,
        pytesseract.TesseractNotFoundError,
        RuntimeError,
        OSError,
    ) as exc:
        logger.warning("Tesseract failed on image: %s", exc)
        return ""
    return (text or "").strip()


def ocr_page_images(page: Any, page_num: int, lang: str) -> str:
    tessdata = get_tessdata_prefix()
    texts = []
    for image in decode_page_images(page, page_num):
        text = ocr_image(image, lang, tessdata)
        if text:
            texts.append(text)
    return "\n".join(texts)


def non_whitespace_length(text: str) -> int:
    return sum(1 for ch in text if not ch.isspace())


def extract_page_text_with_ocr(
    page: Any, page_num: int, page_count_str: str, options: OcrOptions
) -> OcrPageText:
    native = strip_footer_artifacts(extract_native_text(page, page_num), page_count_str)
    if non_whitespace_length(native) >= options.min_text_length:
        return OcrPageText(page=page_num, text=native, source=TextSource.NATIVE)
    logger.debug("Page %d has too little native text, running OCR", page_num)
    return OcrPageText(
        page=page_num,
        text=ocr_page_images(page, page_num, options.lang),
        source=TextSource.OCR,
    )


def extract_text_with_ocr_per_page(
    reader: PdfReader, options: Optional[OcrOptions] = None
) -> List[OcrPageText]:
    options = options or DEFAULT_OCR_OPTIONS
    pages = list(reader.pages)
    page_count_str = str(len(pages))
    pool = get_ocr_pool(normalize_max_threads(options.max_threads))

    def _extract(entry) -> OcrPageText:
        page_num, page = entry
        return extract_page_text_with_ocr(page, page_num, page_count_str, options)

    results = map_unordered(_extract, enumerate(pages, start=1), executor=pool)
    results.sort(key=lambda p: p.page)
    return results


def detect_headers_footers_ocr(pages: List[OcrPageText]) -> List[OcrStructuredPageText]:
    structured = detect_headers_footers(
        [PageText(page=p.page, text=p.text) for p in pages]
    )
    return [
        OcrStructuredPageText(
            page=s.page,
            header=s.header,
            body=s.body,
            footer=s.footer,
            source=p.source,
        )
        for s, p in zip(structured, pages)
    ]


def extract_structured_text_with_ocr_per_page(
    reader: PdfReader, options: Optional[OcrOptions] = None
) -> List[OcrStructuredPageText]:
    return detect_headers_footers_ocr(extract_text_with_ocr_per_page(reader, options))

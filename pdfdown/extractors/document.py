"""
PDF Document Loader and Assembler
=================================

Loads a PDF once with pypdf and fans the per-page extractors out over it.

Shared reader
-------------
pypdf resolves objects lazily by seeking in the input stream, which is not
safe to do from several threads at once. ``load_document`` therefore walks
the whole cross-reference table up front so every object sits in the
reader's cache, and flattens the page tree. After that the reader is only
read from and the same instance is shared by every worker of a call, or by
a ``PdfDown`` handle across calls.

Assembly
--------
Text, images and annotations run as three concurrent branches, each of
which spreads its pages over a thread pool. Page results arrive in
completion order and every branch sorts them by page (images additionally
by their per-page index) before anything is returned.
"""

import io
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import BinaryIO, List, Optional, Sequence, Union

from pypdf import PdfReader
from pypdf.generic import IndirectObject

from pdfdown.exceptions import ExtractionError, PdfLoadError
from pdfdown.extractors.annotation_extractor import extract_annotations_per_page
from pdfdown.extractors.data_types import (
    OcrPageText,
    OcrStructuredPageText,
    PageAnnotation,
    PageImage,
    PageText,
    PdfDocument,
    PdfDocumentOcr,
    PdfMeta,
    StructuredPageText,
)
from pdfdown.extractors.image_extractor import extract_images_per_page
from pdfdown.extractors.meta_extractor import extract_metadata
from pdfdown.extractors.ocr_extractor import (
    OcrOptions,
    detect_headers_footers_ocr,
    extract_structured_text_with_ocr_per_page,
    extract_text_with_ocr_per_page,
)
from pdfdown.extractors.text_extractor import (
    detect_headers_footers,
    extract_structured_text_per_page,
    extract_text_per_page,
)

logger = logging.getLogger(__name__)

PdfSource = Union[bytes, bytearray, memoryview, BinaryIO]


def _to_stream(data: PdfSource) -> io.BytesIO:
    if isinstance(data, (bytes, bytearray, memoryview)):
        return io.BytesIO(bytes(data))
    data.seek(0)
    return io.BytesIO(data.read())


def _preload_objects(reader: PdfReader) -> None:
    for generation, entries in list(reader.xref.items()):
        for idnum in list(entries):
            _load_object(reader, idnum, generation)
    for idnum in list(reader.xref_objStm):
        _load_object(reader, idnum, 0)


def _load_object(reader: PdfReader, idnum: int, generation: int) -> None:
    try:
        reader.get_object(IndirectObject(idnum, generation, reader))
    except Exception as exc:
        logger.debug("Failed to preload object %d %d: %s", idnum, generation, exc)


def load_document(data: PdfSource) -> PdfReader:
    """
    Parse PDF bytes into a reader that can be shared across threads.

    Documents encrypted with an empty user password are decrypted.

    Raises:
        PdfLoadError: the data is not a readable PDF or is password protected.
    """
    try:
        reader = PdfReader(_to_stream(data))
        if reader.is_encrypted:
            try:
                decrypt_result = reader.decrypt("")
            except Exception:
                decrypt_result = 0
            if decrypt_result == 0:
                raise PdfLoadError("PDF is encrypted or password-protected")
        _preload_objects(reader)
        page_count = len(reader.pages)
    except ExtractionError:
        raise
    except Exception as exc:
        raise PdfLoadError(cause=exc) from exc

    logger.debug("Loaded PDF with %d pages", page_count)
    return reader


def _sorted_pages(items: Sequence) -> List[int]:
    return sorted({item.page for item in items})


def extract_document(reader: PdfReader, max_workers: Optional[int] = None) -> PdfDocument:
    meta = extract_metadata(reader)
    with ThreadPoolExecutor(max_workers=3, thread_name_prefix="pdfdown-branch") as branches:
        text_future = branches.submit(extract_text_per_page, reader, max_workers)
        images_future = branches.submit(extract_images_per_page, reader, max_workers)
        annotations_future = branches.submit(
            extract_annotations_per_page, reader, max_workers
        )
        text = text_future.result()
        images = images_future.result()
        annotations = annotations_future.result()

    return _assemble(
        PdfDocument, meta, text, detect_headers_footers(text), images, annotations
    )


def extract_document_ocr(
    reader: PdfReader,
    options: Optional[OcrOptions] = None,
    max_workers: Optional[int] = None,
) -> PdfDocumentOcr:
    meta = extract_metadata(reader)
    with ThreadPoolExecutor(max_workers=3, thread_name_prefix="pdfdown-branch") as branches:
        text_future = branches.submit(extract_text_with_ocr_per_page, reader, options)
        images_future = branches.submit(extract_images_per_page, reader, max_workers)
        annotations_future = branches.submit(
            extract_annotations_per_page, reader, max_workers
        )
        text = text_future.result()
        images = images_future.result()
        annotations = annotations_future.result()

    return _assemble(
        PdfDocumentOcr, meta, text, detect_headers_footers_ocr(text), images, annotations
    )


def _assemble(cls, meta: PdfMeta, text, structured_text, images, annotations):
    document = cls(
        page_count=meta.page_count,
        version=meta.version,
        is_linearized=meta.is_linearized,
        creator=meta.creator,
        producer=meta.producer,
        creation_date=meta.creation_date,
        modification_date=meta.modification_date,
        page_boxes=meta.page_boxes,
        total_images=len(images),
        total_annotations=len(annotations),
        image_pages=_sorted_pages(images),
        annotation_pages=_sorted_pages(annotations),
        text=text,
        structured_text=structured_text,
        images=images,
        annotations=annotations,
    )
    logger.info(
        "Extracted PDF: %d pages, %d images, %d annotations",
        document.page_count,
        document.total_images,
        document.total_annotations,
    )
    return document


class PdfDown:
    """
    A parsed PDF kept open for repeated extractions.

    The document is loaded once; every method runs against the same shared
    reader.

    Example:
        >>> with open("report.pdf", "rb") as f:
        ...     pdf = PdfDown(f.read())
        >>> meta = pdf.metadata()
        >>> for page in pdf.text_per_page():
        ...     print(page.page, len(page.text))
    """

    def __init__(self, data: PdfSource, *, max_workers: Optional[int] = None):
        self._reader = load_document(data)
        self.max_workers = max_workers

    @property
    def page_count(self) -> int:
        return len(self._reader.pages)

    def text_per_page(self) -> List[PageText]:
        return extract_text_per_page(self._reader, self.max_workers)

    def structured_text(self) -> List[StructuredPageText]:
        return extract_structured_text_per_page(self._reader, self.max_workers)

    def images_per_page(self) -> List[PageImage]:
        return extract_images_per_page(self._reader, self.max_workers)

    def annotations_per_page(self) -> List[PageAnnotation]:
        return extract_annotations_per_page(self._reader, self.max_workers)

    def metadata(self) -> PdfMeta:
        return extract_metadata(self._reader)

    def document(self) -> PdfDocument:
        return extract_document(self._reader, self.max_workers)

    def text_with_ocr_per_page(self, options: Optional[OcrOptions] = None) -> List[OcrPageText]:
        return extract_text_with_ocr_per_page(self._reader, options)

    def structured_text_with_ocr(
        self, options: Optional[OcrOptions] = None
    ) -> List[OcrStructuredPageText]:
        return extract_structured_text_with_ocr_per_page(self._reader, options)

    def document_ocr(self, options: Optional[OcrOptions] = None) -> PdfDocumentOcr:
        return extract_document_ocr(self._reader, options, self.max_workers)

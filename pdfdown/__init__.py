"""
pdfdown: structured content extraction for PDF documents.

Extracts per-page text (optionally split into header/body/footer), embedded
raster images re-encoded as PNG, annotations and document metadata from PDF
files, with an OCR fallback for pages that carry no usable native text.
"""

from typing import List, Optional

from pdfdown.exceptions import ExtractionError, OcrPoolError, PdfLoadError
from pdfdown.extractors.data_types import (
    BoxType,
    OcrPageText,
    OcrStructuredPageText,
    PageAnnotation,
    PageBox,
    PageImage,
    PageText,
    PdfDocument,
    PdfDocumentOcr,
    PdfMeta,
    StructuredPageText,
    TextSource,
)
from pdfdown.extractors.document import PdfDown, PdfSource, load_document
from pdfdown.extractors.ocr_extractor import OcrOptions

__version__ = "0.1.0"


def extract_text_per_page(data: PdfSource) -> List[PageText]:
    """Extract native text for every page."""
    from pdfdown.extractors.text_extractor import extract_text_per_page as _extract

    return _extract(load_document(data))


def extract_structured_text_per_page(data: PdfSource) -> List[StructuredPageText]:
    """Extract page text split into repeated header, body and repeated footer."""
    from pdfdown.extractors.text_extractor import (
        extract_structured_text_per_page as _extract,
    )

    return _extract(load_document(data))


def extract_images_per_page(data: PdfSource) -> List[PageImage]:
    """Extract painted images of every page as PNG."""
    from pdfdown.extractors.image_extractor import extract_images_per_page as _extract

    return _extract(load_document(data))


def extract_annotations_per_page(data: PdfSource) -> List[PageAnnotation]:
    """Extract annotations of every page."""
    from pdfdown.extractors.annotation_extractor import (
        extract_annotations_per_page as _extract,
    )

    return _extract(load_document(data))


def pdf_metadata(data: PdfSource) -> PdfMeta:
    """Extract document metadata and grouped page geometry."""
    from pdfdown.extractors.meta_extractor import extract_metadata

    return extract_metadata(load_document(data))


def pdf_document(data: PdfSource) -> PdfDocument:
    """Extract text, images, annotations and metadata in one pass."""
    from pdfdown.extractors.document import extract_document

    return extract_document(load_document(data))


def extract_text_with_ocr_per_page(
    data: PdfSource, options: Optional[OcrOptions] = None
) -> List[OcrPageText]:
    """Extract page text, OCR'ing pages whose native text is too short."""
    from pdfdown.extractors.ocr_extractor import (
        extract_text_with_ocr_per_page as _extract,
    )

    return _extract(load_document(data), options)


def pdf_document_ocr(
    data: PdfSource, options: Optional[OcrOptions] = None
) -> PdfDocumentOcr:
    """Like ``pdf_document`` with OCR fallback for the page text."""
    from pdfdown.extractors.document import extract_document_ocr

    return extract_document_ocr(load_document(data), options)


__all__ = [
    "BoxType",
    "ExtractionError",
    "OcrOptions",
    "OcrPageText",
    "OcrPoolError",
    "OcrStructuredPageText",
    "PageAnnotation",
    "PageBox",
    "PageImage",
    "PageText",
    "PdfDocument",
    "PdfDocumentOcr",
    "PdfDown",
    "PdfLoadError",
    "PdfMeta",
    "StructuredPageText",
    "TextSource",
    "extract_annotations_per_page",
    "extract_images_per_page",
    "extract_structured_text_per_page",
    "extract_text_per_page",
    "extract_text_with_ocr_per_page",
    "load_document",
    "pdf_document",
    "pdf_document_ocr",
    "pdf_metadata",
]

import logging
from typing import Any, List, Optional

from pypdf import PdfReader
from pypdf.generic import ArrayObject, NameObject

from pdfdown.extractors.data_types import PageAnnotation
from pdfdown.extractors.util.pdf_objects import (
    decode_text_string,
    lookup,
    name_text,
    parse_page_box,
    raw_lookup,
    resolve_dict,
)
from pdfdown.extractors.util.worker_pool import map_unordered

logger = logging.getLogger(__name__)


def _annotation_uri(annotation: Any) -> Optional[str]:
    # /A may be inline or an indirect action dictionary
    action = resolve_dict(raw_lookup(annotation, "/A"))
    if action is None:
        return None
    return decode_text_string(lookup(action, "/URI"))


def _annotation_dest(annotation: Any) -> Optional[str]:
    dest = lookup(annotation, "/Dest")
    if isinstance(dest, NameObject):
        return name_text(dest)
    return decode_text_string(dest)


def _read_annotation(annotation: Any, page_num: int) -> PageAnnotation:
    return PageAnnotation(
        page=page_num,
        subtype=name_text(lookup(annotation, "/Subtype")) or "",
        rect=parse_page_box(lookup(annotation, "/Rect")) or [],
        uri=_annotation_uri(annotation),
        dest=_annotation_dest(annotation),
        content=decode_text_string(lookup(annotation, "/Contents")),
    )


def extract_page_annotations(page: Any, page_num: int) -> List[PageAnnotation]:
    """Read every annotation dictionary listed in the page's /Annots array."""
    annots = lookup(page, "/Annots")
    if not isinstance(annots, ArrayObject):
        return []

    results = []
    for entry in annots:
        annotation = resolve_dict(entry)
        if annotation is None:
            continue
        try:
            results.append(_read_annotation(annotation, page_num))
        except Exception as e:
            logger.debug("Skipping malformed annotation on page %d: %s", page_num, e)
    return results


def extract_annotations_per_page(
    reader: PdfReader, max_workers: Optional[int] = None
) -> List[PageAnnotation]:
    pages = list(reader.pages)

    def _extract(entry) -> List[PageAnnotation]:
        page_num, page = entry
        return extract_page_annotations(page, page_num)

    results = [
        annotation
        for page_annotations in map_unordered(
            _extract, enumerate(pages, start=1), max_workers=max_workers
        )
        for annotation in page_annotations
    ]
    # stable sort keeps each page's /Annots order
    results.sort(key=lambda annotation: annotation.page)
    return results

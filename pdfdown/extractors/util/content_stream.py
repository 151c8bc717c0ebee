import logging
from typing import Any, List

from pypdf.generic import (
    ArrayObject,
    ContentStream,
    DecodedStreamObject,
    IndirectObject,
    NameObject,
)

from pdfdown.extractors.util.pdf_objects import raw_lookup, resolve

logger = logging.getLogger(__name__)


def _content_stream_refs(page: Any) -> List[IndirectObject]:
    contents = raw_lookup(page, "/Contents")
    if isinstance(contents, IndirectObject):
        # /Contents may itself point at an array of stream references
        target = resolve(contents)
        if isinstance(target, ArrayObject):
            return [item for item in target if isinstance(item, IndirectObject)]
        return [contents]
    if isinstance(contents, ArrayObject):
        return [item for item in contents if isinstance(item, IndirectObject)]
    return []


def read_page_content(page: Any) -> bytes:
    """
    Concatenate the decoded bytes of every content stream of a page.

    A stream that cannot be decoded contributes its raw bytes.
    """
    chunks = []
    for reference in _content_stream_refs(page):
        stream = resolve(reference)
        if stream is None or not hasattr(stream, "get_data"):
            continue
        try:
            chunks.append(stream.get_data())
        except Exception as exc:
            logger.debug("Failed to decode content stream %s: %s", reference, exc)
            chunks.append(getattr(stream, "_data", b"") or b"")
    return b"\n".join(chunks)


def get_painted_xobject_names(page: Any) -> List[str]:
    """
    Return the XObject names invoked by ``Do`` on a page, in paint order.

    Every name appears once, at its first occurrence. An empty list means the
    scan found nothing (or failed) and callers should fall back to all
    declared XObjects.
    """
    data = read_page_content(page)
    if not data:
        return []

    stream = DecodedStreamObject()
    stream.set_data(data)
    try:
        operations = ContentStream(stream, getattr(page, "pdf", None)).operations
    except Exception as e:
        logger.debug("Failed to parse content stream: %s", e)
        return []

    names: List[str] = []
    seen = set()
    for operands, operator in operations:
        if operator != b"Do" or not operands:
            continue
        name = operands[0]
        if isinstance(name, NameObject) and name not in seen:
            seen.add(name)
            names.append(str(name))
    return names

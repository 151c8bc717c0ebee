"""
PDF Object Helpers
==================

Small accessors over the pypdf object model shared by all extractors.

pypdf exposes PDF values as subclasses of Python builtins (``NameObject`` is
a ``str``, ``NumberObject`` an ``int``, ``FloatObject`` a ``float``,
``ByteStringObject`` a ``bytes``) plus ``IndirectObject`` for references and
``DictionaryObject``/``ArrayObject``/``StreamObject`` containers. The helpers
here dispatch on those classes explicitly instead of relying on pypdf's
implicit dereferencing so that callers can tell a direct value from a
reference when that distinction matters (image XObjects and soft masks must
be references to streams, for example).

Inheritable page attributes (``/Resources``, ``/MediaBox``, ``/CropBox``)
are found by walking the ``/Parent`` chain. The walk keeps a set of visited
object numbers so that a malformed tree with a cyclic parent link ends as
"not found" instead of looping.
"""

import logging
from typing import Any, List, Optional

from pypdf.generic import (
    ArrayObject,
    ByteStringObject,
    DictionaryObject,
    IndirectObject,
    NameObject,
    StreamObject,
    TextStringObject,
)

logger = logging.getLogger(__name__)

UTF16_BE_BOM = b"\xfe\xff"


def raw_lookup(dictionary: Any, key: str) -> Any:
    """Return the unresolved value stored under ``key`` or None."""
    if not isinstance(dictionary, DictionaryObject):
        return None
    try:
        return dictionary.raw_get(key)
    except KeyError:
        return None


def resolve(value: Any) -> Any:
    """Follow one level of indirect reference."""
    if isinstance(value, IndirectObject):
        try:
            return value.get_object()
        except Exception as exc:
            logger.debug("Failed to resolve %r: %s", value, exc)
            return None
    return value


def lookup(dictionary: Any, key: str) -> Any:
    """Return the value under ``key`` with one reference hop resolved."""
    return resolve(raw_lookup(dictionary, key))


def resolve_dict(value: Any) -> Optional[DictionaryObject]:
    """Resolve a direct or referenced dictionary (streams excluded)."""
    value = resolve(value)
    if isinstance(value, DictionaryObject) and not isinstance(value, StreamObject):
        return value
    return None


def resolve_stream(value: Any) -> Optional[StreamObject]:
    """Resolve an indirect reference to a stream; direct values are rejected."""
    if not isinstance(value, IndirectObject):
        return None
    value = resolve(value)
    if isinstance(value, StreamObject):
        return value
    return None


def get_int(dictionary: Any, key: str) -> Optional[int]:
    value = lookup(dictionary, key)
    if isinstance(value, int) and not isinstance(value, bool):
        return int(value)
    return None


def get_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def name_text(value: Any) -> Optional[str]:
    """Return a name without its leading slash, or None for non-names."""
    if isinstance(value, NameObject):
        return value[1:] if value.startswith("/") else str(value)
    return None


def string_bytes(value: Any) -> Optional[bytes]:
    """Return the original encoded bytes of a PDF string object."""
    if isinstance(value, ByteStringObject):
        return bytes(value)
    if isinstance(value, TextStringObject):
        return bytes(value.original_bytes)
    return None


def decode_lossy(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def decode_text_string(value: Any) -> Optional[str]:
    """
    Decode a PDF string for display.

    UTF-16BE strings carrying a byte order mark are decoded as such,
    everything else is read as UTF-8 with replacement characters.
    """
    data = string_bytes(value)
    if data is None:
        return None
    if data.startswith(UTF16_BE_BOM):
        payload = data[2:]
        if len(payload) % 2:
            payload = payload[:-1]
        return payload.decode("utf-16-be", errors="replace")
    return decode_lossy(data)


def object_id(reference: IndirectObject) -> str:
    return f"{reference.idnum} {reference.generation} obj"


def _parent_chain(page: DictionaryObject):
    """Yield ``page`` and then each ancestor reachable through ``/Parent``."""
    visited = set()
    node = page
    reference = getattr(page, "indirect_reference", None)
    if reference is not None:
        visited.add(reference.idnum)
    while node is not None:
        yield node
        parent = raw_lookup(node, "/Parent")
        if not isinstance(parent, IndirectObject):
            return
        if parent.idnum in visited:
            logger.debug("Cyclic /Parent link at object %d", parent.idnum)
            return
        visited.add(parent.idnum)
        node = resolve_dict(parent)


def get_inherited_resources(page: DictionaryObject) -> Optional[DictionaryObject]:
    """Find the nearest ``/Resources`` dictionary on the page or its ancestors."""
    for node in _parent_chain(page):
        resources = raw_lookup(node, "/Resources")
        if resources is not None:
            return resolve_dict(resources)
    return None


def parse_page_box(value: Any) -> Optional[List[float]]:
    """Read the first four numbers of a box array; anything else is malformed."""
    if not isinstance(value, ArrayObject) or len(value) < 4:
        return None
    rect = []
    for item in value[:4]:
        number = get_number(item)
        if number is None:
            return None
        rect.append(number)
    return rect


def get_inherited_page_box(page: DictionaryObject, key: str) -> Optional[List[float]]:
    """
    Find an inheritable page box such as ``/MediaBox`` or ``/CropBox``.

    The box may be stored directly or behind one indirect reference. A box
    that is present but unparsable does not end the search.
    """
    for node in _parent_chain(page):
        value = raw_lookup(node, key)
        if value is None:
            continue
        rect = parse_page_box(resolve(value))
        if rect is not None:
            return rect
    return None

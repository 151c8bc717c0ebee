"""
PDF Image Extractor
===================

Decodes the image XObjects painted on each page and re-encodes them as PNG.

Candidate selection
-------------------
Only images invoked by a ``Do`` operator in the page content are processed,
in the order they are first painted. Resource dictionaries often declare
images that are never drawn (shared /Resources on the page tree, unused
alternates). When the content scan finds nothing the page falls back to
every image declared in its XObject dictionary.

Decode pipeline
---------------
For each candidate:
    1. Require /Subtype /Image with a non-zero /Width and /Height
    2. Resolve the color space tag (ICCBased profiles report their /N)
    3. Resolve the innermost filter of the chain
    4. Keep JPEG / JPEG 2000 payloads as-is; inflate everything else and
       reverse the /DecodeParms predictor (see util.predictors)
    5. Read an optional /SMask as a single-channel alpha plane
    6. Decode with Pillow (codecs or raw samples, CMYK converted to RGB)
    7. Attach the soft mask as alpha
    8. Encode to PNG

A failure anywhere in the pipeline drops that image only. Per-page indexes
are assigned after the fact so they stay gap-free.
"""

import logging
from typing import Any, List, Optional, Tuple

from PIL import Image
from pypdf import PdfReader
from pypdf.generic import ArrayObject, IndirectObject, NameObject, StreamObject

from pdfdown.extractors.data_types import PageImage
from pdfdown.extractors.util.content_stream import get_painted_xobject_names
from pdfdown.extractors.util.image_utils import (
    ENCODED_IMAGE_FILTERS,
    channel_count,
    decode_to_image,
    encode_png,
)
from pdfdown.extractors.util.pdf_objects import (
    get_inherited_resources,
    get_int,
    lookup,
    name_text,
    object_id,
    raw_lookup,
    resolve,
    resolve_dict,
    resolve_stream,
)
from pdfdown.extractors.util.predictors import decompress_stream_content, library_decode
from pdfdown.extractors.util.worker_pool import map_unordered

logger = logging.getLogger(__name__)

DEFAULT_COLOR_SPACE = "DeviceRGB"
NO_FILTER = "None"

Candidate = Tuple[str, IndirectObject, StreamObject]


def _is_image(stream: Any) -> bool:
    return name_text(lookup(stream, "/Subtype")) == "Image"


def _parse_color_space_array(array: ArrayObject) -> str:
    if not array:
        return DEFAULT_COLOR_SPACE
    family = name_text(array[0])
    if family is None:
        return DEFAULT_COLOR_SPACE
    if family == "ICCBased" and len(array) > 1:
        profile_ref = array[1]
        if not isinstance(profile_ref, IndirectObject):
            return "ICCBased"
        profile = resolve(profile_ref)
        if isinstance(profile, StreamObject):
            n = get_int(profile, "/N")
            return f"ICCBased{3 if n is None else n}"
    return family


def resolve_color_space(stream: Any) -> str:
    value = raw_lookup(stream, "/ColorSpace")
    if isinstance(value, IndirectObject):
        value = resolve(value)
    if isinstance(value, NameObject):
        return name_text(value)
    if isinstance(value, ArrayObject):
        return _parse_color_space_array(value)
    return DEFAULT_COLOR_SPACE


def resolve_filter(stream: Any) -> str:
    """Return the innermost (last) filter name, or ``"None"``."""
    value = lookup(stream, "/Filter")
    if isinstance(value, NameObject):
        return name_text(value)
    if isinstance(value, ArrayObject) and value:
        last = name_text(resolve(value[-1]))
        if last is not None:
            return last
    return NO_FILTER


def _filter_chain_length(stream: Any) -> int:
    value = lookup(stream, "/Filter")
    if isinstance(value, ArrayObject):
        return len(value)
    return 1 if value is not None else 0


def get_smask_data(stream: Any) -> Optional[bytes]:
    """Return the decompressed samples of the image's soft mask, if any."""
    smask = resolve_stream(raw_lookup(stream, "/SMask"))
    if smask is None or not _is_image(smask):
        return None
    width = get_int(smask, "/Width") or 0
    height = get_int(smask, "/Height") or 0
    bits = get_int(smask, "/BitsPerComponent") or 8
    return decompress_stream_content(smask, width, height, 1, bits)


def read_image_content(
    stream: Any, filter_name: str, width: int, height: int, color_space: str, bits: int
) -> bytes:
    if filter_name in ENCODED_IMAGE_FILTERS:
        if _filter_chain_length(stream) > 1:
            # outer filters wrap the encoded payload
            return library_decode(stream)
        return getattr(stream, "_data", b"") or b""
    return decompress_stream_content(
        stream, width, height, channel_count(color_space), bits
    )


def get_page_image_candidates(page: Any) -> List[Candidate]:
    """
    Return ``(name, reference, stream)`` for each image XObject to process.

    Painted images come in paint order; pages without any ``Do`` fall back to
    declaration order.
    """
    resources = get_inherited_resources(page)
    xobjects = resolve_dict(raw_lookup(resources, "/XObject"))
    if not xobjects:
        return []

    painted = get_painted_xobject_names(page)
    names = [name for name in painted if name in xobjects] if painted else list(xobjects)

    candidates: List[Candidate] = []
    for name in names:
        reference = raw_lookup(xobjects, name)
        stream = resolve_stream(reference)
        if stream is None or not _is_image(stream):
            continue
        candidates.append((str(name), reference, stream))
    return candidates


def _decode_candidate(stream: Any, with_smask: bool):
    width = get_int(stream, "/Width") or 0
    height = get_int(stream, "/Height") or 0
    bits = get_int(stream, "/BitsPerComponent")
    bits = 8 if bits is None else bits
    if width <= 0 or height <= 0:
        return None

    color_space = resolve_color_space(stream)
    filter_name = resolve_filter(stream)
    content = read_image_content(stream, filter_name, width, height, color_space, bits)
    smask = get_smask_data(stream) if with_smask else None

    image = decode_to_image(
        content, width, height, bits, color_space, filter_name, smask=smask
    )
    if image is None:
        raise ValueError(
            f"pixel buffer of {len(content)} bytes does not fit {width}x{height} {color_space}"
        )
    return image, width, height, bits, color_space, filter_name


def extract_page_images(page: Any, page_num: int) -> List[PageImage]:
    images: List[PageImage] = []
    for name, reference, stream in get_page_image_candidates(page):
        try:
            decoded = _decode_candidate(stream, with_smask=True)
            if decoded is None:
                continue
            image, width, height, bits, color_space, filter_name = decoded
            data = encode_png(image)
        except Exception as e:
            logger.warning(
                "Failed to extract image [%s] on page %d: %s", name, page_num, e
            )
            continue
        images.append(
            PageImage(
                page=page_num,
                image_index=len(images),
                width=width,
                height=height,
                bits_per_component=bits,
                color_space=color_space,
                filter=filter_name,
                data=data,
                xobject_name=name.lstrip("/"),
                object_id=object_id(reference),
            )
        )
    return images


def decode_page_images(page: Any, page_num: int = 0) -> List[Image.Image]:
    """Decode every painted image of a page without soft-mask compositing."""
    decoded_images: List[Image.Image] = []
    for name, _reference, stream in get_page_image_candidates(page):
        try:
            decoded = _decode_candidate(stream, with_smask=False)
        except Exception as e:
            logger.warning(
                "Failed to decode image [%s] on page %d for OCR: %s", name, page_num, e
            )
            continue
        if decoded is not None:
            decoded_images.append(decoded[0])
    return decoded_images


def extract_images_per_page(
    reader: PdfReader, max_workers: Optional[int] = None
) -> List[PageImage]:
    pages = list(reader.pages)

    def _extract(entry) -> List[PageImage]:
        page_num, page = entry
        return extract_page_images(page, page_num)

    results = [
        image
        for page_images in map_unordered(
            _extract, enumerate(pages, start=1), max_workers=max_workers
        )
        for image in page_images
    ]
    results.sort(key=lambda image: (image.page, image.image_index))
    return results

import typing
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class TextSource(str, Enum):
    NATIVE = "native"
    OCR = "ocr"


class BoxType(str, Enum):
    """Which page box a page's geometry was read from, in priority order."""

    CROP_BOX = "CropBox"
    MEDIA_BOX = "MediaBox"
    UNKNOWN = "Unknown"


#########
# Text
#########


@dataclass
class PageText:
    page: int = 0
    text: str = ""


@dataclass
class StructuredPageText:
    """
    Page text split into repeated header lines, body and repeated footer lines.

    Joining the non-empty parts with newlines gives back the page's lines,
    except when the body is a single blank line: it is stored as an empty
    string and dropped on the join.
    """

    page: int = 0
    header: str = ""
    body: str = ""
    footer: str = ""

    def get_full_text(self) -> str:
        return "\n".join(part for part in (self.header, self.body, self.footer) if part)


@dataclass
class OcrPageText(PageText):
    source: TextSource = TextSource.NATIVE


@dataclass
class OcrStructuredPageText(StructuredPageText):
    source: TextSource = TextSource.NATIVE


#########
# Images
#########


@dataclass
class PageImage:
    page: int = 0
    image_index: int = 0
    width: int = 0
    height: int = 0
    bits_per_component: int = 8
    color_space: str = ""
    filter: str = ""
    data: bytes = b""
    xobject_name: str = ""
    object_id: str = ""


#############
# Annotations
#############


@dataclass
class PageAnnotation:
    page: int = 0
    subtype: str = ""
    rect: List[float] = field(default_factory=list)
    uri: Optional[str] = None
    dest: Optional[str] = None
    content: Optional[str] = None


##########
# Metadata
##########


@dataclass
class PageBox:
    """
    Geometry shared by a group of pages.

    ``pages`` is None on the dominant group, meaning every page that is not
    listed by another group.
    """

    page_count: int = 0
    left: float = 0.0
    bottom: float = 0.0
    right: float = 0.0
    top: float = 0.0
    width: float = 0.0
    height: float = 0.0
    box_type: BoxType = BoxType.UNKNOWN
    pages: Optional[List[int]] = None


@dataclass
class PdfMeta:
    page_count: int = 0
    version: str = ""
    is_linearized: bool = False
    creator: Optional[str] = None
    producer: Optional[str] = None
    creation_date: Optional[str] = None
    modification_date: Optional[str] = None
    page_boxes: List[PageBox] = field(default_factory=list)


###########
# Documents
###########


@dataclass
class PdfDocument(PdfMeta):
    total_images: int = 0
    total_annotations: int = 0
    image_pages: List[int] = field(default_factory=list)
    annotation_pages: List[int] = field(default_factory=list)
    text: List[PageText] = field(default_factory=list)
    structured_text: List[StructuredPageText] = field(default_factory=list)
    images: List[PageImage] = field(default_factory=list)
    annotations: List[PageAnnotation] = field(default_factory=list)

    def iterator(self) -> typing.Iterator[str]:
        for page in self.text:
            yield page.text

    def get_full_text(self) -> str:
        return "\n".join(self.iterator())

    def get_metadata(self) -> PdfMeta:
        return PdfMeta(
            page_count=self.page_count,
            version=self.version,
            is_linearized=self.is_linearized,
            creator=self.creator,
            producer=self.producer,
            creation_date=self.creation_date,
            modification_date=self.modification_date,
            page_boxes=list(self.page_boxes),
        )


@dataclass
class PdfDocumentOcr(PdfDocument):
    text: List[OcrPageText] = field(default_factory=list)
    structured_text: List[OcrStructuredPageText] = field(default_factory=list)

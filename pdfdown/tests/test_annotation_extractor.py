import unittest

from pdfdown.extractors.annotation_extractor import extract_annotations_per_page
from pdfdown.extractors.document import load_document
from pdfdown.tests.pdf_factory import PdfBuilder, ref

tc = unittest.TestCase()
tc.maxDiff = None


def _annotated_pdf() -> bytes:
    builder = PdfBuilder()
    action = builder.add(b"<< /S /URI /URI (https://example.com/indirect) >>")
    link_inline = builder.add(
        b"<< /Type /Annot /Subtype /Link /Rect [10 20 110 40.5] "
        b"/A << /S /URI /URI (https://example.com/inline) >> >>"
    )
    link_indirect = builder.add(
        b"<< /Type /Annot /Subtype /Link /Rect [0 0 1 1] /A " + ref(action) + b" >>"
    )
    named_dest = builder.add(
        b"<< /Type /Annot /Subtype /Link /Rect [0 0 5 5] /Dest /Chapter1 >>"
    )
    string_dest = builder.add(
        b"<< /Type /Annot /Subtype /Link /Rect [0 0 5] /Dest (section-2) >>"
    )
    note = builder.add(
        b"<< /Type /Annot /Subtype /Text /Rect [1 2 3 4] /Contents (Check this figure) >>"
    )
    bare = builder.add(b"<< /Type /Annot >>")

    builder.add_page(
        b"",
        extra=b"/Annots [" + b" ".join(ref(n) for n in (link_inline, link_indirect)) + b"]",
    )
    builder.add_page(b"")
    builder.add_page(
        b"",
        extra=b"/Annots ["
        + b" ".join(ref(n) for n in (named_dest, string_dest, note, bare))
        + b"]",
    )
    return builder.build()


def test_annotations_are_sorted_by_page_and_keep_order() -> None:
    reader = load_document(_annotated_pdf())
    annotations = extract_annotations_per_page(reader, max_workers=3)

    tc.assertEqual([1, 1, 3, 3, 3, 3], [a.page for a in annotations])
    tc.assertEqual(
        ["Link", "Link", "Link", "Link", "Text", ""], [a.subtype for a in annotations]
    )


def test_link_uris_inline_and_indirect() -> None:
    annotations = extract_annotations_per_page(load_document(_annotated_pdf()))

    tc.assertEqual("https://example.com/inline", annotations[0].uri)
    tc.assertEqual([10.0, 20.0, 110.0, 40.5], annotations[0].rect)
    tc.assertEqual("https://example.com/indirect", annotations[1].uri)


def test_destinations_and_contents() -> None:
    annotations = extract_annotations_per_page(load_document(_annotated_pdf()))
    named, string_dest, note, bare = annotations[2:]

    tc.assertEqual("Chapter1", named.dest)
    tc.assertIsNone(named.uri)
    tc.assertEqual("section-2", string_dest.dest)
    # fewer than four numbers is treated as malformed
    tc.assertEqual([], string_dest.rect)
    tc.assertEqual("Check this figure", note.content)
    tc.assertEqual([1.0, 2.0, 3.0, 4.0], note.rect)
    tc.assertEqual([], bare.rect)
    tc.assertIsNone(bare.dest)
    tc.assertIsNone(bare.content)


def test_pages_without_annotations() -> None:
    builder = PdfBuilder()
    builder.add_page(b"")
    tc.assertEqual([], extract_annotations_per_page(load_document(builder.build())))

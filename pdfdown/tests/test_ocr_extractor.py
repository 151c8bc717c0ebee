import subprocess
import unittest

import pytesseract
import pytest
from PIL import Image

from pdfdown.exceptions import OcrPoolError
from pdfdown.extractors import ocr_extractor
from pdfdown.extractors.data_types import TextSource
from pdfdown.extractors.document import load_document
from pdfdown.extractors.ocr_extractor import (
    OcrOptions,
    _parse_quoted_path,
    extract_structured_text_with_ocr_per_page,
    extract_text_with_ocr_per_page,
    non_whitespace_length,
    ocr_image,
)
from pdfdown.extractors.util import worker_pool
from pdfdown.extractors.util.worker_pool import get_ocr_pool, normalize_max_threads
from pdfdown.tests.pdf_factory import (
    PdfBuilder,
    image_entries,
    paint_image,
    solid_rgb,
    text_content,
)

tc = unittest.TestCase()
tc.maxDiff = None


@pytest.fixture
def fake_tesseract(monkeypatch):
    """Replace the Tesseract call with a recorder returning a fixed string."""
    calls = []

    def _image_to_string(image, lang=None, config=""):
        calls.append({"mode": image.mode, "size": image.size, "lang": lang, "config": config})
        return "  scanned words \n"

    monkeypatch.setattr(pytesseract, "image_to_string", _image_to_string)
    monkeypatch.setattr(ocr_extractor, "_tessdata_prefix", "/opt/tessdata")
    return calls


def _mixed_pdf() -> bytes:
    """Page 1 carries text, page 2 only a painted image, page 3 is empty."""
    builder = PdfBuilder()
    image = builder.add_stream(image_entries(4, 3), solid_rgb(4, 3, (200, 10, 10)))
    builder.add_page(text_content(["Native text on the first page"]))
    builder.add_page(paint_image("Scan"), xobjects={"Scan": image})
    builder.add_page(b"")
    return builder.build()


##########
# helpers
##########


def test_parse_quoted_path() -> None:
    tc.assertEqual(
        "/usr/share/tesseract-ocr/5/tessdata/",
        _parse_quoted_path(
            'List of available languages in "/usr/share/tesseract-ocr/5/tessdata/" (3):'
        ),
    )
    tc.assertIsNone(_parse_quoted_path("no quotes here"))
    tc.assertIsNone(_parse_quoted_path('only "one quote'))


def test_tessdata_prefix_env_override(monkeypatch) -> None:
    monkeypatch.setenv("TESSDATA_PREFIX", "/custom/tessdata")
    tc.assertEqual("/custom/tessdata", ocr_extractor._detect_tessdata_prefix())


def _fake_list_langs(monkeypatch, *, stdout=b"", stderr=b"", error=None):
    """Replace ``tesseract --list-langs`` and record each invocation."""
    calls = []

    def _run(args, **kwargs):
        calls.append(args)
        if error is not None:
            raise error
        return subprocess.CompletedProcess(args, 0, stdout=stdout, stderr=stderr)

    monkeypatch.delenv("TESSDATA_PREFIX", raising=False)
    monkeypatch.setattr(ocr_extractor.subprocess, "run", _run)
    monkeypatch.setattr(ocr_extractor, "_tessdata_prefix", ocr_extractor._UNSET)
    return calls


def test_tessdata_prefix_read_from_stderr_once(monkeypatch) -> None:
    calls = _fake_list_langs(
        monkeypatch,
        stdout=b"eng\nosd\n",
        stderr=b'List of available languages in "/x/tessdata/" (2):\n',
    )

    tc.assertEqual("/x/tessdata/", ocr_extractor.get_tessdata_prefix())
    tc.assertEqual("/x/tessdata/", ocr_extractor.get_tessdata_prefix())
    tc.assertEqual(1, len(calls))
    tc.assertEqual("--list-langs", calls[0][-1])


def test_tessdata_prefix_falls_back_to_stdout(monkeypatch) -> None:
    _fake_list_langs(
        monkeypatch,
        stdout=b'List of available languages in "/y/tessdata" (1):\neng\n',
        stderr=b"warning: no quotes here\n",
    )

    tc.assertEqual("/y/tessdata", ocr_extractor.get_tessdata_prefix())


@pytest.mark.parametrize(
    "error",
    [OSError("tesseract not found"), subprocess.TimeoutExpired("tesseract", 30)],
)
def test_tessdata_prefix_none_when_tesseract_fails(monkeypatch, error) -> None:
    calls = _fake_list_langs(monkeypatch, error=error)

    tc.assertIsNone(ocr_extractor.get_tessdata_prefix())
    tc.assertIsNone(ocr_extractor.get_tessdata_prefix())
    tc.assertEqual(1, len(calls))


def test_tessdata_prefix_none_without_quoted_path(monkeypatch) -> None:
    _fake_list_langs(monkeypatch, stdout=b"eng\n", stderr=b"")

    tc.assertIsNone(ocr_extractor.get_tessdata_prefix())


def test_non_whitespace_length() -> None:
    tc.assertEqual(0, non_whitespace_length(" \n\t "))
    tc.assertEqual(5, non_whitespace_length(" a b\nc de "))


def test_normalize_max_threads(monkeypatch) -> None:
    monkeypatch.setattr(worker_pool.os, "cpu_count", lambda: 8)
    tc.assertEqual(4, normalize_max_threads(None))
    tc.assertEqual(1, normalize_max_threads(0))
    tc.assertEqual(1, normalize_max_threads(-3))
    tc.assertEqual(6, normalize_max_threads(6))
    tc.assertEqual(8, normalize_max_threads(64))


def test_normalize_max_threads_on_small_machine(monkeypatch) -> None:
    monkeypatch.setattr(worker_pool.os, "cpu_count", lambda: 2)
    tc.assertEqual(2, normalize_max_threads(None))


def test_ocr_pools_are_cached_per_size() -> None:
    tc.assertIs(get_ocr_pool(2), get_ocr_pool(2))
    tc.assertIsNot(get_ocr_pool(1), get_ocr_pool(2))


def test_ocr_pool_failure_is_wrapped(monkeypatch) -> None:
    def _broken_executor(*args, **kwargs):
        raise RuntimeError("no threads left")

    monkeypatch.setattr(worker_pool, "ThreadPoolExecutor", _broken_executor)
    with pytest.raises(OcrPoolError) as excinfo:
        get_ocr_pool(987)
    tc.assertEqual(987, excinfo.value.max_threads)
    tc.assertIsInstance(excinfo.value.__cause__, RuntimeError)


def test_ocr_image_failure_gives_empty_string(monkeypatch) -> None:
    def _raise(*args, **kwargs):
        raise pytesseract.TesseractError(1, "bad language")

    monkeypatch.setattr(pytesseract, "image_to_string", _raise)
    tc.assertEqual("", ocr_image(Image.new("L", (2, 2)), "xyz"))


###############
# page handling
###############


def test_ocr_runs_only_for_pages_without_native_text(fake_tesseract) -> None:
    reader = load_document(_mixed_pdf())

    pages = extract_text_with_ocr_per_page(reader, OcrOptions(lang="deu", max_threads=2))

    tc.assertEqual([1, 2, 3], [p.page for p in pages])
    tc.assertEqual(
        [TextSource.NATIVE, TextSource.OCR, TextSource.OCR], [p.source for p in pages]
    )
    tc.assertIn("Native text on the first page", pages[0].text)
    tc.assertEqual("scanned words", pages[1].text)
    # no images on the page means nothing to OCR
    tc.assertEqual("", pages[2].text)

    tc.assertEqual(1, len(fake_tesseract))
    call = fake_tesseract[0]
    tc.assertEqual("RGB", call["mode"])
    tc.assertEqual((4, 3), call["size"])
    tc.assertEqual("deu", call["lang"])
    tc.assertEqual('--tessdata-dir "/opt/tessdata"', call["config"])


def test_min_text_length_forces_ocr(fake_tesseract) -> None:
    builder = PdfBuilder()
    image = builder.add_stream(image_entries(2, 2), solid_rgb(2, 2, (0, 0, 0)))
    builder.add_page(
        text_content(["ab"]) + b"\n" + paint_image("Scan"), xobjects={"Scan": image}
    )
    reader = load_document(builder.build())

    kept = extract_text_with_ocr_per_page(reader, OcrOptions(min_text_length=2))
    replaced = extract_text_with_ocr_per_page(reader, OcrOptions(min_text_length=50))

    tc.assertEqual(TextSource.NATIVE, kept[0].source)
    tc.assertEqual(TextSource.OCR, replaced[0].source)
    tc.assertEqual("scanned words", replaced[0].text)


def test_structured_ocr_keeps_source_per_page(fake_tesseract) -> None:
    reader = load_document(_mixed_pdf())

    structured = extract_structured_text_with_ocr_per_page(reader)

    tc.assertEqual([1, 2, 3], [s.page for s in structured])
    tc.assertEqual(
        [TextSource.NATIVE, TextSource.OCR, TextSource.OCR], [s.source for s in structured]
    )
    # no line repeats across pages, so nothing is split off
    tc.assertEqual("scanned words", structured[1].body)
    tc.assertEqual("", structured[1].header)

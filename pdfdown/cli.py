from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Sequence

from pdfdown.extractors.data_types import PdfDocument
from pdfdown.extractors.document import PdfDown
from pdfdown.extractors.ocr_extractor import OcrOptions
from pdfdown.extractors.serialization import serialize_extraction


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pdfdown",
        description="Extract PDF content and emit full text to stdout (or JSON with --json).",
    )
    parser.add_argument(
        "path",
        type=Path,
        help="Path to the PDF file to extract.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit the structured document as JSON instead of plain full text (omits image data by default).",
    )
    parser.add_argument(
        "--binary",
        action="store_true",
        help="With --json, include PNG image data as base64 blobs.",
    )
    parser.add_argument(
        "--ocr",
        action="store_true",
        help="OCR pages whose native text is shorter than --min-text-length.",
    )
    parser.add_argument(
        "--lang",
        default=OcrOptions.lang,
        help="Tesseract language(s) for --ocr (default: %(default)s).",
    )
    parser.add_argument(
        "--min-text-length",
        type=int,
        default=OcrOptions.min_text_length,
        help="Minimum non-whitespace characters for a page to keep its native text (default: %(default)s).",
    )
    parser.add_argument(
        "--max-threads",
        type=int,
        default=None,
        help="OCR worker threads, capped at the CPU count (default: 4).",
    )
    return parser


def _extract(args: argparse.Namespace) -> PdfDocument:
    pdf = PdfDown(args.path.read_bytes())
    if not args.ocr:
        return pdf.document()
    return pdf.document_ocr(
        OcrOptions(
            lang=args.lang,
            min_text_length=args.min_text_length,
            max_threads=args.max_threads,
        )
    )


def _render(document: PdfDocument, args: argparse.Namespace) -> str:
    if args.json:
        return json.dumps(
            serialize_extraction(document, include_binary=args.binary)
        )
    return document.get_full_text().rstrip()


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        # argparse exits on --help and usage errors
        return exc.code if isinstance(exc.code, int) else 1

    if args.binary and not args.json:
        print("pdfdown: --binary requires --json", file=sys.stderr)
        return 1

    try:
        output = _render(_extract(args), args)
    except Exception as exc:
        print(f"pdfdown: {exc}", file=sys.stderr)
        return 1
    print(output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

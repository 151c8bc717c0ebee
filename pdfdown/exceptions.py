class ExtractionError(Exception):
    """Base class for all errors raised by pdfdown."""

    def __init__(self, message: str = None, *, cause: Exception = None):
        if message is None:
            message = "PDF extraction failed"
        super().__init__(message)
        # Use exception chaining if cause is provided
        self.__cause__ = cause


class PdfLoadError(ExtractionError):
    """Raised when the PDF bytes cannot be parsed into a document."""

    def __init__(self, message: str = None, *, cause: Exception = None):
        if message is None:
            message = "Failed to load PDF"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message, cause=cause)


class OcrPoolError(ExtractionError):
    """Raised when a bounded OCR worker pool cannot be created."""

    def __init__(self, max_threads: int, message: str = None, *, cause: Exception = None):
        self.max_threads = max_threads
        if message is None:
            message = f"Failed to build OCR worker pool with {max_threads} threads"
        super().__init__(message, cause=cause)

from __future__ import annotations


class DocbotError(RuntimeError):
    error_code = "E-DOCBOT"

    def __init__(self, message: str, *, error_code: str | None = None, retryable: bool = False) -> None:
        super().__init__(message)
        if error_code is not None:
            self.error_code = error_code
        self.retryable = retryable


class SourceFetchError(DocbotError):
    error_code = "S-FETCH-FAILED"


class SourceListError(DocbotError):
    error_code = "S-LIST-FAILED"


class SignatureMismatchError(DocbotError):
    """Payload bytes do not carry the magic signature of the declared format."""

    error_code = "E-SIGNATURE-MISMATCH"


class ExtractionError(DocbotError):
    error_code = "E-EXTRACTION-FAILED"


class IndexWriteError(DocbotError):
    error_code = "I-INDEX-WRITE-FAILED"


class IndexUnavailableError(DocbotError):
    error_code = "I-INDEX-UNAVAILABLE"


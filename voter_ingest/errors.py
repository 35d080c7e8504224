"""Failure taxonomy shared by the pipeline, the HTTP layer and the CLI."""

from __future__ import annotations

from dataclasses import dataclass

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2
EXIT_PARTIAL = 6
EXIT_STORE_UNAVAILABLE = 7


class IngestError(Exception):
    code = "ingest_error"
    status_code = 500
    exit_code = EXIT_COMMAND_ERROR
    message_hi = "सर्वर एरर"

    def __init__(self, message: str, *, message_hi: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if message_hi is not None:
            self.message_hi = message_hi

    def to_payload(self) -> dict[str, object]:
        return {
            "success": False,
            "error": self.code,
            "message": self.message,
            "message_hi": self.message_hi,
        }


class MalformedInputError(IngestError):
    code = "malformed_input"
    status_code = 400
    exit_code = EXIT_PARSE_FAILED
    message_hi = "अमान्य Excel फाइल फॉर्मेट"


class ReaderUnavailableError(MalformedInputError):
    """The file type is supported, but its optional reader (xlrd, odfpy) is not installed."""

    code = "unsupported_reader"
    message_hi = "इस फाइल फॉर्मेट के लिए सर्वर पर रीडर उपलब्ध नहीं है"


class EmptyInputError(IngestError):
    code = "empty_input"
    status_code = 400
    exit_code = EXIT_PARSE_FAILED
    message_hi = "Excel फाइल खाली है"


class NoValidRecordsError(IngestError):
    code = "no_valid_records"
    status_code = 400
    exit_code = EXIT_PARSE_FAILED
    message_hi = "कोई वैध डेटा नहीं मिला (नाम के साथ)"


class UploadTooLargeError(IngestError):
    code = "upload_too_large"
    status_code = 413
    exit_code = EXIT_COMMAND_ERROR
    message_hi = "फाइल बहुत बड़ी है"


class InvalidRequestError(IngestError):
    code = "invalid_request"
    status_code = 400
    exit_code = EXIT_COMMAND_ERROR
    message_hi = "अमान्य अनुरोध"


class RecordNotFoundError(IngestError):
    code = "not_found"
    status_code = 404
    exit_code = EXIT_COMMAND_ERROR
    message_hi = "वोटर नहीं मिला"


class TransportFailure(IngestError):
    """The store connection failed; chunks committed before the fault stay committed."""

    code = "store_unavailable"
    status_code = 503
    exit_code = EXIT_STORE_UNAVAILABLE
    message_hi = "डेटाबेस कनेक्शन विफल"

    def __init__(self, message: str, *, inserted_count: int = 0, error_count: int = 0) -> None:
        super().__init__(message)
        self.inserted_count = inserted_count
        self.error_count = error_count

    def to_payload(self) -> dict[str, object]:
        payload = super().to_payload()
        payload["insertedCount"] = self.inserted_count
        payload["errorCount"] = self.error_count
        return payload


@dataclass
class RecordFailure:
    index: int
    row: int | None
    code: int | None
    message: str

    def to_dict(self) -> dict[str, object]:
        return {"index": self.index, "row": self.row, "code": self.code, "message": self.message}

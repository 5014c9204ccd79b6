from __future__ import annotations

import io
import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from docbot.core.errors import ExtractionError, SignatureMismatchError
from docbot.core.logging import log_event

LOGGER = logging.getLogger(__name__)

PDF_SIGNATURE = b"%PDF"
OLE2_SIGNATURE = bytes.fromhex("D0CF11E0A1B11AE1")
ZIP_SIGNATURE = b"PK\x03\x04"

GOOGLE_DOCUMENT = "application/vnd.google-apps.document"
GOOGLE_SPREADSHEET = "application/vnd.google-apps.spreadsheet"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

MIME_FORMATS = {
    "application/pdf": "pdf",
    "application/msword": "doc",
    DOCX_MIME: "docx",
    "application/vnd.ms-excel": "xls",
    XLSX_MIME: "xlsx",
    "text/plain": "text",
    "text/csv": "text",
    GOOGLE_DOCUMENT: "docx",
    GOOGLE_SPREADSHEET: "xlsx",
    "confluence/page": "text",
}

EXTENSION_FORMATS = {
    ".pdf": "pdf",
    ".doc": "doc",
    ".docx": "docx",
    ".xls": "xls",
    ".xlsx": "xlsx",
    ".txt": "text",
    ".csv": "text",
}

ALTERNATE_FORMATS = {"doc": "docx", "docx": "doc", "xls": "xlsx", "xlsx": "xls"}

PRINTABLE_SAMPLE_SIZE = 1000
PRINTABLE_RATIO = 0.8


def resolve_format(content_type: str | None, filename: str | None) -> str | None:
    """Map a declared content type to an extractor key, falling back to the file extension."""
    if content_type:
        fmt = MIME_FORMATS.get(content_type.lower().split(";", 1)[0].strip())
        if fmt:
            return fmt
    if filename:
        return EXTENSION_FORMATS.get(Path(filename).suffix.lower())
    return None


def is_printable_text(text: str) -> bool:
    if not text:
        return False
    sample = text[:PRINTABLE_SAMPLE_SIZE]
    printable = sum(1 for ch in sample if 32 <= ord(ch) < 127 or ch in "\n\r\t")
    return printable / len(sample) > PRINTABLE_RATIO


def decode_text(payload: bytes) -> str:
    return payload.decode("utf-8", errors="replace")


def _require_signature(payload: bytes, signature: bytes, fmt: str) -> None:
    if not payload.startswith(signature):
        raise SignatureMismatchError(f"payload is not a {fmt} file")


def _format_cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def render_workbook(sheets: list[tuple[str, list[list[Any]]]]) -> str:
    parts: list[str] = []
    for name, rows in sheets:
        parts.append(f"Sheet: {name}\n")
        for row in rows:
            for value in row:
                cell = _format_cell(value)
                if cell:
                    parts.append(f"{cell}\t")
            parts.append("\n")
        parts.append("\n")
    return "".join(parts)


def extract_pdf(payload: bytes) -> str:
    _require_signature(payload, PDF_SIGNATURE, "pdf")
    try:
        import pdfplumber
    except ImportError as exc:  # pragma: no cover - hard failure in misconfigured environments
        raise RuntimeError("pdfplumber is required for PDF extraction") from exc

    with pdfplumber.open(io.BytesIO(payload)) as pdf:
        return "\n".join((page.extract_text() or "") for page in pdf.pages)


def extract_docx(payload: bytes) -> str:
    _require_signature(payload, ZIP_SIGNATURE, "docx")
    import docx

    document = docx.Document(io.BytesIO(payload))
    return "".join(f"{paragraph.text}\n" for paragraph in document.paragraphs)


def extract_xlsx(payload: bytes) -> str:
    _require_signature(payload, ZIP_SIGNATURE, "xlsx")
    import openpyxl

    workbook = openpyxl.load_workbook(io.BytesIO(payload), read_only=True, data_only=True)
    try:
        sheets = [(ws.title, [list(row) for row in ws.iter_rows(values_only=True)]) for ws in workbook.worksheets]
    finally:
        workbook.close()
    return render_workbook(sheets)


def extract_xls(payload: bytes) -> str:
    _require_signature(payload, OLE2_SIGNATURE, "xls")
    import xlrd

    book = xlrd.open_workbook(file_contents=payload)
    sheets = []
    for sheet in book.sheets():
        sheets.append((sheet.name, [sheet.row_values(idx) for idx in range(sheet.nrows)]))
    return render_workbook(sheets)


# Word 97-2003 binary layout (MS-DOC): FIB flags and the Clx location in FibRgFcLcb97.
_FIB_FLAGS_OFFSET = 0x000A
_FIB_WHICH_TABLE = 0x0200
_FIB_FC_CLX = 0x01A2
_FIB_LCB_CLX = 0x01A6
_PCD_COMPRESSED = 0x40000000
_DOC_CONTROL_MAP = {"\r": "\n", "\x07": "\t", "\x0b": "\n", "\x0c": "\n"}


def _doc_piece_table(table_stream: bytes, fc_clx: int, lcb_clx: int) -> tuple[list[int], list[int]]:
    clx = table_stream[fc_clx : fc_clx + lcb_clx]
    pos = 0
    while pos < len(clx) and clx[pos] == 0x01:
        (cb_grpprl,) = struct.unpack_from("<H", clx, pos + 1)
        pos += 3 + cb_grpprl
    if pos >= len(clx) or clx[pos] != 0x02:
        raise ExtractionError("doc piece table not found")
    (lcb,) = struct.unpack_from("<I", clx, pos + 1)
    plc = clx[pos + 5 : pos + 5 + lcb]
    count = (lcb - 4) // 12
    cps = list(struct.unpack_from(f"<{count + 1}I", plc, 0))
    fcs = [struct.unpack_from("<I", plc, (count + 1) * 4 + idx * 8 + 2)[0] for idx in range(count)]
    return cps, fcs


def extract_doc(payload: bytes) -> str:
    _require_signature(payload, OLE2_SIGNATURE, "doc")
    import olefile

    with olefile.OleFileIO(io.BytesIO(payload)) as ole:
        if not ole.exists("WordDocument"):
            raise ExtractionError("OLE2 container has no WordDocument stream")
        word = ole.openstream("WordDocument").read()
        (flags,) = struct.unpack_from("<H", word, _FIB_FLAGS_OFFSET)
        table_name = "1Table" if flags & _FIB_WHICH_TABLE else "0Table"
        if not ole.exists(table_name):
            raise ExtractionError(f"OLE2 container has no {table_name} stream")
        table = ole.openstream(table_name).read()

    (fc_clx,) = struct.unpack_from("<I", word, _FIB_FC_CLX)
    (lcb_clx,) = struct.unpack_from("<I", word, _FIB_LCB_CLX)
    cps, fcs = _doc_piece_table(table, fc_clx, lcb_clx)

    pieces: list[str] = []
    for idx, raw_fc in enumerate(fcs):
        length = cps[idx + 1] - cps[idx]
        if raw_fc & _PCD_COMPRESSED:
            offset = (raw_fc & ~_PCD_COMPRESSED) // 2
            pieces.append(word[offset : offset + length].decode("cp1252", errors="replace"))
        else:
            pieces.append(word[raw_fc : raw_fc + 2 * length].decode("utf-16-le", errors="replace"))
    text = "".join(pieces)
    for control, replacement in _DOC_CONTROL_MAP.items():
        text = text.replace(control, replacement)
    return text


def extract_plain_text(payload: bytes) -> str:
    return decode_text(payload)


@dataclass
class TextExtractor:
    """Format registry with an ordered fallback chain.

    The declared format is tried first. A signature mismatch moves on to the
    alternate format of the same family, and as a last resort a payload that
    looks like printable text is returned as-is. Anything else yields None.
    """

    extractors: dict[str, Callable[[bytes], str]] | None = None

    def __post_init__(self) -> None:
        if self.extractors is None:
            self.extractors = {
                "pdf": extract_pdf,
                "doc": extract_doc,
                "docx": extract_docx,
                "xls": extract_xls,
                "xlsx": extract_xlsx,
                "text": extract_plain_text,
            }

    def register(self, fmt: str, extractor: Callable[[bytes], str]) -> None:
        self.extractors[fmt] = extractor

    def attempts_for(self, fmt: str) -> list[str]:
        attempts = [fmt]
        alternate = ALTERNATE_FORMATS.get(fmt)
        if alternate and alternate in self.extractors:
            attempts.append(alternate)
        return attempts

    def extract(self, payload: bytes, content_type: str | None, filename: str | None = None) -> str | None:
        fmt = resolve_format(content_type, filename)
        if fmt is None or fmt not in self.extractors:
            LOGGER.warning(
                "extraction_unsupported_type",
                extra={"event": "extraction_unsupported_type", "content_type": content_type, "file_name": filename},
            )
            return None

        for attempt in self.attempts_for(fmt):
            try:
                return self.extractors[attempt](payload)
            except SignatureMismatchError:
                LOGGER.info(
                    "extraction_signature_mismatch",
                    extra={"event": "extraction_signature_mismatch", "format": attempt, "file_name": filename},
                )
                continue
            except Exception as exc:  # noqa: BLE001
                log_event(
                    "extraction.failed",
                    level=logging.WARNING,
                    payload={"format": attempt, "file_name": filename, "error": str(exc), "error_code": ExtractionError.error_code},
                )
                return None

        text = decode_text(payload)
        if is_printable_text(text):
            LOGGER.info("extraction_plain_text_fallback", extra={"event": "extraction_plain_text_fallback", "file_name": filename})
            return text
        log_event(
            "extraction.failed",
            level=logging.WARNING,
            payload={"format": fmt, "file_name": filename, "error": "no extractor accepted the payload", "error_code": SignatureMismatchError.error_code},
        )
        return None

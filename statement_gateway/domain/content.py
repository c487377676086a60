"""
Best-effort text extraction from uploaded bank statements.

The output only has to be good enough for a language model to read, so
spreadsheets and PDFs are first handed to a real parser (openpyxl,
pdfplumber) and, when that fails, to a heuristic scan of the raw container.
The scans recover a bag of text and number tokens; they do not rebuild rows
or columns and will under-extract on many real-world files.
"""

import html
import io
import logging
import re
import zipfile
import zlib
from datetime import date, datetime
from typing import Iterable, List

import openpyxl
import pdfplumber

from statement_gateway.domain.exceptions import ExtractionError
from statement_gateway.domain.models import StatementFormat

logger = logging.getLogger(__name__)

MIN_CONTENT_CHARS = 10

CSV_REMEDY = "try converting it to CSV format"

_WHITESPACE = re.compile(r"\s+")
_ALNUM = re.compile(r"[A-Za-z0-9]")

# SpreadsheetML structural markers
_SHARED_STRING = re.compile(r"<si(?:\s[^>]*)?>(.*?)</si>", re.S)
_CELL = re.compile(r"<c\b([^>]*?)(?:/>|>(.*?)</c>)", re.S)
_CELL_REF = re.compile(r'\br="[A-Z]+\d+"')
_SHARED_STRING_CELL = re.compile(r'\bt="s"')
_TEXT = re.compile(r"<t(?:\s[^>]*)?>(.*?)</t>", re.S)
_VALUE = re.compile(r"<v(?:\s[^>]*)?>(.*?)</v>", re.S)
_NUMBER = re.compile(r"^-?\d+(\.\d+)?$")

# PDF text-show operands and content streams
_PDF_LITERAL = re.compile(r"\(((?:\\.|[^\\)])+)\)", re.S)
_PDF_STREAM = re.compile(r"(?<!end)stream\r?\n?(.*?)\r?\n?endstream", re.S)
_PDF_ESCAPE = re.compile(r"\\(.)", re.S)
_PDF_ESCAPES = {"n": "\n", "r": "\r", "t": "\t"}


def normalize_whitespace(text: str) -> str:
    """Collapse runs of whitespace into single spaces"""
    return _WHITESPACE.sub(" ", text).strip()


def ensure_sufficient_content(text: str, min_chars: int = MIN_CONTENT_CHARS) -> str:
    """Reject extracted text too short to hold a single statement line"""
    if not text or len(text.strip()) < min_chars:
        raise ExtractionError("File appears to be empty or contains insufficient data for processing")
    return text


def extract_text(data: bytes, statement_format: StatementFormat, min_chars: int = MIN_CONTENT_CHARS) -> str:
    """
    Produce plain text for the language model from a statement of any supported format.

    Raises:
        ExtractionError: When no usable text can be recovered
    """
    if statement_format is StatementFormat.CSV:
        text = decode_csv(data)
    elif statement_format is StatementFormat.SPREADSHEET:
        text = extract_spreadsheet_text(data, min_chars)
    elif statement_format is StatementFormat.PDF:
        text = extract_pdf_text(data, min_chars)
    else:
        raise ExtractionError(f"No extractor for format {statement_format!r}")

    return ensure_sufficient_content(text, min_chars)


# --- CSV -------------------------------------------------------------------


def decode_csv(data: bytes) -> str:
    """CSV is passed through unchanged; only the byte decoding can fail"""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise ExtractionError(
            "CSV file is not valid UTF-8 text. Please re-export the statement as a UTF-8 CSV file."
        ) from e


# --- Spreadsheets ----------------------------------------------------------


def extract_spreadsheet_text(data: bytes, min_chars: int = MIN_CONTENT_CHARS) -> str:
    try:
        text = parse_spreadsheet_text(data)
    except Exception as e:  # openpyxl raises a different error per failure mode
        logger.warning("Spreadsheet parser failed, falling back to container scan", extra={"error": str(e)})
        text = ""

    if len(text.strip()) >= min_chars:
        return text
    return scan_spreadsheet_text(data, min_chars)


def parse_spreadsheet_text(data: bytes) -> str:
    """Read every worksheet with openpyxl, one line per non-empty row"""
    workbook = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    lines: List[str] = []
    try:
        for sheet in workbook.worksheets:
            for row in sheet.iter_rows(values_only=True):
                cells = [_format_cell(value) for value in row if value is not None]
                cells = [cell for cell in cells if cell]
                if cells:
                    lines.append(" ".join(cells))
    finally:
        workbook.close()
    return "\n".join(lines)


def _format_cell(value) -> str:
    if isinstance(value, datetime):
        if value.time() == datetime.min.time():
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return normalize_whitespace(str(value))


def scan_spreadsheet_text(data: bytes, min_chars: int = MIN_CONTENT_CHARS) -> str:
    """
    Heuristic scan for shared strings and cell values in a spreadsheet container.

    XLSX files are ZIP archives of XML parts, so the scan runs over the
    decompressed members when the data is a valid archive and over the raw
    bytes otherwise.

    Raises:
        ExtractionError: If fewer than ``min_chars`` characters are recovered
    """
    tokens: List[str] = []
    for document in _spreadsheet_documents(data):
        tokens.extend(_scan_spreadsheet_xml(document))

    text = normalize_whitespace(" ".join(tokens))
    if len(text) < min_chars:
        raise ExtractionError(
            "No readable content found in Excel file. The file might be empty, encrypted, "
            f"or in a legacy binary format. Please {CSV_REMEDY}."
        )
    return text


def _spreadsheet_documents(data: bytes) -> Iterable[str]:
    buffer = io.BytesIO(data)
    if not zipfile.is_zipfile(buffer):
        yield data.decode("utf-8", errors="ignore")
        return

    with zipfile.ZipFile(buffer) as archive:
        names = [name for name in archive.namelist() if name.endswith(".xml")]
        # Shared strings first so text precedes the numbers it labels
        names.sort(key=lambda name: (not name.endswith("sharedStrings.xml"), name))
        for name in names:
            try:
                yield archive.read(name).decode("utf-8", errors="ignore")
            except (zipfile.BadZipFile, zlib.error, NotImplementedError) as e:
                logger.warning("Skipping unreadable spreadsheet member", extra={"member": name, "error": str(e)})


def _scan_spreadsheet_xml(document: str) -> List[str]:
    tokens: List[str] = []

    for shared in _SHARED_STRING.finditer(document):
        tokens.extend(_texts(shared.group(1)))

    for cell in _CELL.finditer(document):
        attributes, body = cell.group(1), cell.group(2) or ""
        if not _CELL_REF.search(attributes):
            continue
        # Shared-string cells hold an index into sharedStrings, not a value
        if not _SHARED_STRING_CELL.search(attributes):
            for value in _VALUE.findall(body):
                value = value.strip()
                if _NUMBER.match(value):
                    tokens.append(value)
        tokens.extend(_texts(body))

    return tokens


def _texts(fragment: str) -> List[str]:
    texts = []
    for text in _TEXT.findall(fragment):
        text = html.unescape(text).strip()
        if text:
            texts.append(text)
    return texts


# --- PDF -------------------------------------------------------------------


def extract_pdf_text(data: bytes, min_chars: int = MIN_CONTENT_CHARS) -> str:
    """
    Parse with pdfplumber, which opens PDFs encrypted with an empty user password.
    Encrypted files it cannot read are rejected; the raw scan only sees ciphertext.
    """
    try:
        text = parse_pdf_text(data)
    except Exception as e:  # pdfminer surfaces malformed input as many unrelated types
        logger.warning("PDF parser failed, falling back to text-operator scan", extra={"error": str(e)})
        text = ""

    if len(text.strip()) >= min_chars:
        return text

    if b"/Encrypt" in data:
        raise ExtractionError(
            "PDF is password-protected or encrypted. Please upload an unprotected copy, "
            f"or {CSV_REMEDY}."
        )
    return scan_pdf_text(data, min_chars)


def parse_pdf_text(data: bytes) -> str:
    """Extract page text with pdfplumber, pages separated by newlines"""
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        pages = [page.extract_text() or "" for page in pdf.pages]
    return "\n".join(page for page in pages if page.strip())


def scan_pdf_text(data: bytes, min_chars: int = MIN_CONTENT_CHARS) -> str:
    """
    Heuristic scan for literal strings passed to PDF text-show operators.

    Literal runs are collected from the document body and from inside every
    content stream, inflating Flate-compressed streams first.

    Raises:
        ExtractionError: If fewer than ``min_chars`` characters are recovered
    """
    document = data.decode("latin-1")
    tokens: List[str] = []

    for stream in _PDF_STREAM.finditer(document):
        tokens.extend(_pdf_literals(_inflate(stream.group(1))))

    tokens.extend(_pdf_literals(_PDF_STREAM.sub(" ", document)))

    text = normalize_whitespace(" ".join(tokens))
    if len(text) < min_chars:
        raise ExtractionError(
            "No readable text content found in PDF. The PDF might be image-based or encrypted. "
            f"Please {CSV_REMEDY}."
        )
    return text


def _inflate(stream: str) -> str:
    raw = stream.encode("latin-1")
    try:
        return zlib.decompress(raw).decode("latin-1")
    except zlib.error:
        return stream


def _pdf_literals(content: str) -> List[str]:
    literals = []
    for match in _PDF_LITERAL.finditer(content):
        text = _PDF_ESCAPE.sub(lambda m: _PDF_ESCAPES.get(m.group(1), m.group(1)), match.group(1))
        if len(text) > 1 and _ALNUM.search(text):
            literals.append(text)
    return literals

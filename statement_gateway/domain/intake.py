"""Upload validation performed before any content extraction"""

import os
from typing import Optional

from statement_gateway.domain.exceptions import ValidationError
from statement_gateway.domain.models import StatementFormat, UploadedFile

MIME_TYPES = {
    "text/csv": StatementFormat.CSV,
    "application/pdf": StatementFormat.PDF,
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": StatementFormat.SPREADSHEET,
    "application/vnd.ms-excel": StatementFormat.SPREADSHEET,
}

EXTENSIONS = {
    ".csv": StatementFormat.CSV,
    ".pdf": StatementFormat.PDF,
    ".xlsx": StatementFormat.SPREADSHEET,
    ".xls": StatementFormat.SPREADSHEET,
}


def infer_format(filename: str, content_type: Optional[str]) -> Optional[StatementFormat]:
    """Resolve the statement format from the MIME type, falling back to the extension"""
    if content_type:
        # Browsers may append parameters, e.g. "text/csv; charset=utf-8"
        mime = content_type.split(";", 1)[0].strip().lower()
        if mime in MIME_TYPES:
            return MIME_TYPES[mime]

    extension = os.path.splitext(filename or "")[1].lower()
    return EXTENSIONS.get(extension)


def validate_upload(
    upload: Optional[UploadedFile],
    business_id: Optional[str],
    max_bytes: int,
) -> StatementFormat:
    """
    Check an upload against intake constraints.

    Size is checked before type so oversized files are never inspected further.

    Raises:
        ValidationError: with ``constraint`` set to ``missing_field``,
            ``file_size`` or ``file_type``
    """
    if upload is None or not business_id:
        raise ValidationError("Missing file or business ID", constraint="missing_field")

    if upload.size > max_bytes:
        limit_mb = max_bytes / (1024 * 1024)
        raise ValidationError(
            f"File size must be less than {limit_mb:g}MB",
            constraint="file_size",
        )

    statement_format = infer_format(upload.filename, upload.content_type)
    if statement_format is None:
        raise ValidationError(
            "Unsupported file type. Please upload CSV, Excel (.xlsx/.xls), or PDF files only.",
            constraint="file_type",
        )

    return statement_format

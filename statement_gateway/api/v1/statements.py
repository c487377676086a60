"""POST /v1/bank-statements - bank statement ingestion endpoint"""

import time
import uuid
import logging
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from statement_gateway.api.v1.schemas import BankRecordSchema, ErrorResponse, UploadResponse
from statement_gateway.api.dependencies import get_extraction_client, get_request_id
from statement_gateway.api.errors import error_response, outcome_for
from statement_gateway.config import settings
from statement_gateway.infrastructure.database.session import get_db
from statement_gateway.infrastructure.database.repositories import BankRecordRepository
from statement_gateway.infrastructure.clients.llm import TransactionExtractionClient
from statement_gateway.domain.content import extract_text
from statement_gateway.domain.intake import validate_upload
from statement_gateway.domain.models import UploadedFile
from statement_gateway.domain.exceptions import (
    DomainException,
    PersistenceError,
    ValidationError,
)
from statement_gateway.infrastructure.observability.metrics import record_upload
from statement_gateway.infrastructure.observability.logging import log_ingestion

router = APIRouter()


@router.post(
    "/bank-statements",
    response_model=UploadResponse,
    responses={
        400: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        415: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
)
async def upload_bank_statement(
    request: Request,
    file: Optional[UploadFile] = File(None),
    business_id: Optional[str] = Form(None, alias="businessId"),
    db: Session = Depends(get_db),
    extraction_client: TransactionExtractionClient = Depends(get_extraction_client),
):
    """
    Ingest a bank statement into unprocessed bank records.

    Flow:
    1. Validate size and type (nothing is extracted from a rejected file)
    2. Extract plain text from the CSV / spreadsheet / PDF
    3. Ask the language model for structured records and validate them
    4. Insert the surviving records as one batch with processed=false
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        # 1. Intake; read at most one byte past the ceiling so oversized files are not buffered
        upload = None
        if file is not None:
            data = await file.read(settings.max_upload_bytes + 1)
            upload = UploadedFile(filename=file.filename or "", content_type=file.content_type, data=data)

        statement_format = validate_upload(upload, business_id, settings.max_upload_bytes)
        try:
            business_uuid = uuid.UUID(business_id)
        except ValueError:
            raise ValidationError("Invalid business ID format", constraint="business_id")

        # 2. Text extraction; parsers are CPU-bound, keep them off the event loop
        text = await run_in_threadpool(extract_text, upload.data, statement_format, settings.min_content_chars)

        # 3. Structured extraction via the language model
        records = await extraction_client.extract(text)

        # 4. Persist as one batch
        repo = BankRecordRepository(db)
        db_records = repo.create_records(business_uuid, records)
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"Failed to save records: {e}") from e

        # Record metrics and logs
        duration_ms = (time.time() - start_time) * 1000
        record_upload("success", len(db_records))
        log_ingestion(request_id, business_id, statement_format.value, len(db_records), duration_ms)

        return UploadResponse(
            message=f"Successfully processed {len(db_records)} bank payment records",
            records_processed=len(db_records),
            records=[BankRecordSchema.model_validate(record) for record in db_records],
        )

    except ValidationError as e:
        record_upload(outcome_for(e))
        logging.warning(f"Upload rejected: {e}", extra={"request_id": request_id, "constraint": e.constraint})
        return error_response(e)

    except DomainException as e:
        db.rollback()
        record_upload(outcome_for(e))
        logging.error(f"Statement processing failed: {e}", extra={"request_id": request_id})
        return error_response(e)

    except Exception as e:
        db.rollback()
        record_upload("error")
        logging.exception(f"Unexpected error: {e}", extra={"request_id": request_id})
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

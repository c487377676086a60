"""Bank record review endpoints - list and delete unreconciled statement lines"""

import uuid
import datetime
import logging
from typing import Literal, Optional
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from statement_gateway.api.v1.schemas import BankRecordPage, BankRecordSchema, MessageResponse
from statement_gateway.api.dependencies import get_request_id
from statement_gateway.api.errors import error_response
from statement_gateway.infrastructure.database.session import get_db
from statement_gateway.infrastructure.database.repositories import BankRecordRepository
from statement_gateway.domain.exceptions import DomainException

router = APIRouter()

PROCESSED_FILTER = {"unprocessed": False, "processed": True, "all": None}


@router.get("/businesses/{business_id}/bank-records", response_model=BankRecordPage)
def list_bank_records(
    business_id: uuid.UUID,
    status: Literal["unprocessed", "processed", "all"] = Query("unprocessed", description="Reconciliation state"),
    record_type: Optional[Literal["money-in", "money-out"]] = Query(None, alias="type"),
    start_date: Optional[datetime.date] = Query(None),
    end_date: Optional[datetime.date] = Query(None),
    search: Optional[str] = Query(None, description="Matches description or beneficiary"),
    sort_by: Literal["date", "amount", "description", "beneficiary_name"] = Query("date"),
    sort_dir: Literal["asc", "desc"] = Query("desc"),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """
    Page through a business's bank records, unreconciled ones by default.

    Returns:
        Total match count and the requested page of records
    """
    repo = BankRecordRepository(db)
    total, records = repo.list_records(
        business_id,
        processed=PROCESSED_FILTER[status],
        record_type=record_type,
        start_date=start_date,
        end_date=end_date,
        search=search,
        sort_by=sort_by,
        descending=sort_dir == "desc",
        page=page,
        per_page=per_page,
    )

    return BankRecordPage(
        total=total,
        page=page,
        per_page=per_page,
        records=[BankRecordSchema.model_validate(record) for record in records],
    )


@router.delete("/bank-records/{record_id}", response_model=MessageResponse)
def delete_bank_record(record_id: uuid.UUID, request: Request, db: Session = Depends(get_db)):
    """Delete a bank record that has not been reconciled"""
    try:
        BankRecordRepository(db).delete_record(record_id)
        db.commit()
    except DomainException as e:
        db.rollback()
        logging.warning(f"Bank record delete failed: {e}", extra={"request_id": get_request_id(request)})
        return error_response(e)

    return MessageResponse(message="Record deleted successfully")

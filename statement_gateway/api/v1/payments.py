"""Payment record endpoints - reconcile bank records against transactions"""

import uuid
import logging
from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from statement_gateway.api.v1.schemas import (
    PaymentDeletedResponse,
    PaymentRecordCreateRequest,
    PaymentRecordResponse,
    PaymentRecordSchema,
    PaymentRecordUpdateRequest,
    TransactionSummarySchema,
)
from statement_gateway.api.dependencies import get_request_id
from statement_gateway.api.errors import error_response
from statement_gateway.infrastructure.database.session import get_db
from statement_gateway.infrastructure.database.repositories import PaymentRecordRepository, TransactionRepository
from statement_gateway.domain.exceptions import DomainException, PersistenceError

router = APIRouter()


def commit(db: Session) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"Failed to save reconciliation: {e}") from e


def payment_response(db: Session, payment) -> PaymentRecordResponse:
    db_transaction = TransactionRepository(db).get_transaction(payment.transaction_id)
    return PaymentRecordResponse(
        payment=PaymentRecordSchema.model_validate(payment),
        transaction=TransactionSummarySchema.model_validate(db_transaction),
    )


@router.post("/payment-records", response_model=PaymentRecordResponse, status_code=201)
def create_payment_record(
    request_body: PaymentRecordCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Reconcile a bank record against a sale or expense.

    The bank record is marked processed and the transaction's amount_paid and
    payment_status are recomputed in the same database transaction.
    """
    try:
        payment = PaymentRecordRepository(db).create_payment(
            business_id=request_body.business_id,
            transaction_id=request_body.transaction_id,
            bank_record_id=request_body.bank_record_id,
            amount=request_body.amount,
            payment_date=request_body.payment_date,
            notes=request_body.notes,
        )
        commit(db)
    except DomainException as e:
        db.rollback()
        logging.warning(f"Reconciliation rejected: {e}", extra={"request_id": get_request_id(request)})
        return error_response(e)

    return payment_response(db, payment)


@router.patch("/payment-records/{payment_id}", response_model=PaymentRecordResponse)
def update_payment_record(
    payment_id: uuid.UUID,
    request_body: PaymentRecordUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """Change a payment's amount, date, notes or transaction and recompute payment state"""
    try:
        payment = PaymentRecordRepository(db).update_payment(
            payment_id,
            amount=request_body.amount,
            payment_date=request_body.payment_date,
            notes=request_body.notes,
            transaction_id=request_body.transaction_id,
        )
        commit(db)
    except DomainException as e:
        db.rollback()
        logging.warning(f"Payment update rejected: {e}", extra={"request_id": get_request_id(request)})
        return error_response(e)

    return payment_response(db, payment)


@router.delete("/payment-records/{payment_id}", response_model=PaymentDeletedResponse)
def delete_payment_record(payment_id: uuid.UUID, request: Request, db: Session = Depends(get_db)):
    """Unlink a payment; its bank record returns to the unprocessed queue"""
    try:
        transaction_id = PaymentRecordRepository(db).delete_payment(payment_id)
        commit(db)
    except DomainException as e:
        db.rollback()
        logging.warning(f"Payment delete rejected: {e}", extra={"request_id": get_request_id(request)})
        return error_response(e)

    db_transaction = TransactionRepository(db).get_transaction(transaction_id)
    return PaymentDeletedResponse(
        message="Payment record deleted",
        transaction=TransactionSummarySchema.model_validate(db_transaction),
    )

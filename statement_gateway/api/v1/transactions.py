"""Transaction endpoints - register sales/expenses and read their payment state"""

import uuid
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from statement_gateway.api.v1.schemas import TransactionCreateRequest, TransactionResponse
from statement_gateway.api.errors import error_response
from statement_gateway.infrastructure.database.session import get_db
from statement_gateway.infrastructure.database.repositories import TransactionRepository
from statement_gateway.domain.exceptions import DomainException

router = APIRouter()


@router.post("/transactions", response_model=TransactionResponse, status_code=201)
def create_transaction(request_body: TransactionCreateRequest, db: Session = Depends(get_db)):
    """
    Register a sale or expense.

    amount_paid starts at zero and payment_status at unpaid; both change
    only through payment records.
    """
    try:
        db_transaction = TransactionRepository(db).create_transaction(
            business_id=request_body.business_id,
            transaction_type=request_body.type,
            total=request_body.total,
            transaction_date=request_body.date,
            description=request_body.description,
        )
        db.commit()
    except DomainException as e:
        db.rollback()
        return error_response(e)

    return TransactionResponse.model_validate(db_transaction)


@router.get("/transactions/{transaction_id}", response_model=TransactionResponse)
def get_transaction(transaction_id: uuid.UUID, db: Session = Depends(get_db)):
    """
    Retrieve a transaction with its derived payment fields.

    Returns:
        Transaction, amount_paid, payment_status and linked payment records
    """
    db_transaction = TransactionRepository(db).get_transaction(transaction_id)
    if not db_transaction:
        raise HTTPException(status_code=404, detail="Transaction not found")

    return TransactionResponse.model_validate(db_transaction)

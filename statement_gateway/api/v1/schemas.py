"""Pydantic schemas for API request/response validation"""

import uuid
import datetime
from decimal import Decimal
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Body of every error response"""

    error: str


class BankRecordSchema(BaseModel):
    """Persisted bank statement line"""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    business_id: uuid.UUID
    date: datetime.date
    type: Literal["money-in", "money-out"]
    description: str
    amount: Decimal
    beneficiary_name: Optional[str] = None
    processed: bool
    transaction_id: Optional[uuid.UUID] = None


class UploadResponse(BaseModel):
    """Response for POST /v1/bank-statements"""

    message: str
    records_processed: int
    records: List[BankRecordSchema]


class BankRecordPage(BaseModel):
    """Response for GET /v1/businesses/{business_id}/bank-records"""

    total: int
    page: int
    per_page: int
    records: List[BankRecordSchema]


class MessageResponse(BaseModel):
    message: str


class TransactionCreateRequest(BaseModel):
    """Request body for POST /v1/transactions"""

    business_id: uuid.UUID
    type: Literal["sale", "expense"]
    total: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    date: datetime.date
    description: Optional[str] = None


class PaymentRecordSchema(BaseModel):
    """Reconciliation link between a bank record and a transaction"""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    business_id: uuid.UUID
    transaction_id: uuid.UUID
    bank_record_id: uuid.UUID
    amount: Decimal
    payment_date: datetime.date
    notes: Optional[str] = None


class TransactionSummarySchema(BaseModel):
    """Derived payment fields of a transaction"""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    total: Decimal
    amount_paid: Decimal
    payment_status: Literal["unpaid", "partially_paid", "paid"]


class TransactionResponse(TransactionSummarySchema):
    """Response for GET /v1/transactions/{transaction_id}"""

    business_id: uuid.UUID
    type: Literal["sale", "expense"]
    description: Optional[str] = None
    date: datetime.date
    payments: List[PaymentRecordSchema] = []


class PaymentRecordCreateRequest(BaseModel):
    """Request body for POST /v1/payment-records"""

    business_id: uuid.UUID
    transaction_id: uuid.UUID
    bank_record_id: uuid.UUID
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    payment_date: datetime.date
    notes: Optional[str] = None


class PaymentRecordUpdateRequest(BaseModel):
    """Request body for PATCH /v1/payment-records/{payment_id}"""

    amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    payment_date: Optional[datetime.date] = None
    notes: Optional[str] = None
    transaction_id: Optional[uuid.UUID] = None


class PaymentRecordResponse(BaseModel):
    """Payment link together with the transaction state it produced"""

    payment: PaymentRecordSchema
    transaction: TransactionSummarySchema


class PaymentDeletedResponse(BaseModel):
    """Response for DELETE /v1/payment-records/{payment_id}"""

    message: str
    transaction: TransactionSummarySchema

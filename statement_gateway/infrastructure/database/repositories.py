"""Data access layer for bank records, transactions and payment records"""

import uuid
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from statement_gateway.infrastructure.database.models import BankRecord, PaymentRecord, Transaction
from statement_gateway.infrastructure.observability.metrics import payment_status_counter
from statement_gateway.domain.exceptions import NotFoundError, PersistenceError, ReconciliationError
from statement_gateway.domain.models import ExtractedRecord, PaymentStatus, PaymentSummary
from statement_gateway.domain.payments import recompute_payment_summary

SORTABLE_COLUMNS = {
    "date": BankRecord.date,
    "amount": BankRecord.amount,
    "description": BankRecord.description,
    "beneficiary_name": BankRecord.beneficiary_name,
}


def flush_or_raise(db: Session, message: str) -> None:
    """Flush pending changes, rolling back and raising PersistenceError on failure"""
    try:
        db.flush()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceError(f"{message}: {e}") from e


class BankRecordRepository:
    """Repository for bank statement lines"""

    def __init__(self, db: Session):
        self.db = db

    def create_records(self, business_id: uuid.UUID, records: List[ExtractedRecord]) -> List[BankRecord]:
        """
        Insert validated records as unprocessed bank records in one batch.

        Raises:
            PersistenceError: If any row fails; nothing from the batch is kept
        """
        db_records = [
            BankRecord(
                business_id=business_id,
                date=record.date,
                type=record.type,
                description=record.description,
                amount=record.amount,
                beneficiary_name=record.beneficiary_name,
                processed=False,
            )
            for record in records
        ]
        self.db.add_all(db_records)
        flush_or_raise(self.db, "Failed to save records")
        return db_records

    def get_record(self, record_id: uuid.UUID) -> Optional[BankRecord]:
        return self.db.query(BankRecord).filter(BankRecord.id == record_id).first()

    def list_records(
        self,
        business_id: uuid.UUID,
        processed: Optional[bool] = False,
        record_type: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        search: Optional[str] = None,
        sort_by: str = "date",
        descending: bool = True,
        page: int = 1,
        per_page: int = 20,
    ) -> Tuple[int, List[BankRecord]]:
        """Filtered, sorted page of a business's bank records plus the total match count"""
        query = self.db.query(BankRecord).filter(BankRecord.business_id == business_id)

        if processed is not None:
            query = query.filter(BankRecord.processed == processed)
        if record_type:
            query = query.filter(BankRecord.type == record_type)
        if start_date:
            query = query.filter(BankRecord.date >= start_date)
        if end_date:
            query = query.filter(BankRecord.date <= end_date)
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                or_(BankRecord.description.ilike(pattern), BankRecord.beneficiary_name.ilike(pattern))
            )

        total = query.count()

        column = SORTABLE_COLUMNS.get(sort_by, BankRecord.date)
        order = column.desc() if descending else column.asc()
        records = (
            query.order_by(order, BankRecord.id)
            .offset((page - 1) * per_page)
            .limit(per_page)
            .all()
        )
        return total, records

    def delete_record(self, record_id: uuid.UUID) -> None:
        """Delete a bank record that has not been reconciled"""
        record = self.get_record(record_id)
        if record is None:
            raise NotFoundError("Bank record not found")
        if record.payment is not None:
            raise ReconciliationError("Bank record is reconciled; delete its payment record first")

        self.db.delete(record)
        flush_or_raise(self.db, "Failed to delete bank record")


class TransactionRepository:
    """Repository for sales and expenses"""

    def __init__(self, db: Session):
        self.db = db

    def create_transaction(
        self,
        business_id: uuid.UUID,
        transaction_type: str,
        total: Decimal,
        transaction_date: date,
        description: Optional[str] = None,
    ) -> Transaction:
        db_transaction = Transaction(
            business_id=business_id,
            type=transaction_type,
            description=description,
            total=total,
            amount_paid=Decimal("0"),
            payment_status=PaymentStatus.UNPAID.value,
            date=transaction_date,
        )
        self.db.add(db_transaction)
        flush_or_raise(self.db, "Failed to save transaction")
        return db_transaction

    def get_transaction(self, transaction_id: uuid.UUID) -> Optional[Transaction]:
        return self.db.query(Transaction).filter(Transaction.id == transaction_id).first()

    def refresh_payment_status(self, transaction_id: uuid.UUID) -> PaymentSummary:
        """
        Recompute amount_paid and payment_status from every linked payment record.

        The transaction row is locked first so concurrent payment mutations on
        the same transaction serialize; the recompute is from scratch, so the
        last writer always leaves a correct projection.
        """
        db_transaction = (
            self.db.query(Transaction)
            .filter(Transaction.id == transaction_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if db_transaction is None:
            raise NotFoundError("Transaction not found")

        amounts = [
            amount
            for (amount,) in self.db.query(PaymentRecord.amount)
            .filter(PaymentRecord.transaction_id == transaction_id)
            .all()
        ]
        summary = recompute_payment_summary(db_transaction.total, amounts)

        db_transaction.amount_paid = summary.amount_paid
        db_transaction.payment_status = summary.payment_status.value
        flush_or_raise(self.db, "Failed to update transaction payment status")
        self.db.expire(db_transaction, ["payments"])

        payment_status_counter.labels(status=summary.payment_status.value).inc()
        return summary


class PaymentRecordRepository:
    """Repository for reconciliation links; every mutation refreshes the affected transactions"""

    def __init__(self, db: Session):
        self.db = db
        self.transactions = TransactionRepository(db)

    def get_payment(self, payment_id: uuid.UUID) -> Optional[PaymentRecord]:
        return self.db.query(PaymentRecord).filter(PaymentRecord.id == payment_id).first()

    def create_payment(
        self,
        business_id: uuid.UUID,
        transaction_id: uuid.UUID,
        bank_record_id: uuid.UUID,
        amount: Decimal,
        payment_date: date,
        notes: Optional[str] = None,
    ) -> PaymentRecord:
        """
        Link a bank record to a transaction and mark the bank record processed.

        Raises:
            NotFoundError: Transaction or bank record does not exist
            ReconciliationError: Non-positive amount, business mismatch, or
                bank record already linked
        """
        if amount <= 0:
            raise ReconciliationError("Payment amount must be greater than zero")

        db_transaction = self.transactions.get_transaction(transaction_id)
        if db_transaction is None:
            raise NotFoundError("Transaction not found")

        bank_record = self.db.query(BankRecord).filter(BankRecord.id == bank_record_id).first()
        if bank_record is None:
            raise NotFoundError("Bank record not found")

        if db_transaction.business_id != business_id or bank_record.business_id != business_id:
            raise ReconciliationError("Bank record and transaction must belong to the same business")

        if bank_record.payment is not None:
            raise ReconciliationError("Bank record is already linked to a transaction")

        payment = PaymentRecord(
            business_id=business_id,
            transaction=db_transaction,
            bank_record=bank_record,
            amount=amount,
            payment_date=payment_date,
            notes=notes,
        )
        bank_record.processed = True
        bank_record.transaction_id = transaction_id
        self.db.add(payment)

        try:
            self.db.flush()
        except IntegrityError as e:
            # Unique bank_record_id lost a race with a concurrent link
            self.db.rollback()
            raise ReconciliationError("Bank record is already linked to a transaction") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to save payment record: {e}") from e

        self.transactions.refresh_payment_status(transaction_id)
        return payment

    def update_payment(
        self,
        payment_id: uuid.UUID,
        amount: Optional[Decimal] = None,
        payment_date: Optional[date] = None,
        notes: Optional[str] = None,
        transaction_id: Optional[uuid.UUID] = None,
    ) -> PaymentRecord:
        """Change a payment link; both the old and new transaction are refreshed when it moves"""
        payment = self.get_payment(payment_id)
        if payment is None:
            raise NotFoundError("Payment record not found")

        if amount is not None:
            if amount <= 0:
                raise ReconciliationError("Payment amount must be greater than zero")
            payment.amount = amount
        if payment_date is not None:
            payment.payment_date = payment_date
        if notes is not None:
            payment.notes = notes

        previous_transaction_id = payment.transaction_id
        if transaction_id is not None and transaction_id != previous_transaction_id:
            target = self.transactions.get_transaction(transaction_id)
            if target is None:
                raise NotFoundError("Transaction not found")
            if target.business_id != payment.business_id:
                raise ReconciliationError("Bank record and transaction must belong to the same business")
            payment.transaction = target
            payment.bank_record.transaction_id = transaction_id

        flush_or_raise(self.db, "Failed to update payment record")

        if payment.transaction_id != previous_transaction_id:
            self.transactions.refresh_payment_status(previous_transaction_id)
        self.transactions.refresh_payment_status(payment.transaction_id)
        return payment

    def delete_payment(self, payment_id: uuid.UUID) -> uuid.UUID:
        """Remove a payment link, returning its bank record to the unprocessed queue"""
        payment = self.get_payment(payment_id)
        if payment is None:
            raise NotFoundError("Payment record not found")

        transaction_id = payment.transaction_id
        bank_record = payment.bank_record
        bank_record.processed = False
        bank_record.transaction_id = None

        self.db.delete(payment)
        flush_or_raise(self.db, "Failed to delete payment record")
        self.db.expire(bank_record, ["payment"])

        self.transactions.refresh_payment_status(transaction_id)
        return transaction_id

"""SQLAlchemy ORM models for bank records, transactions and payment links"""

import uuid
from sqlalchemy import (
    DDL,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    Text,
    Uuid,
    event,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class BankRecord(Base):
    """One line item parsed from an uploaded bank statement"""

    __tablename__ = "bank_payment_records"
    __table_args__ = (
        CheckConstraint("type IN ('money-in', 'money-out')", name="ck_bank_record_type"),
        CheckConstraint("amount >= 0", name="ck_bank_record_amount"),
        Index("idx_bank_payment_records_business_date", "business_id", "date"),
        Index("idx_bank_payment_records_processed", "business_id", "processed"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Uuid, nullable=False)
    date = Column(Date, nullable=False)
    type = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    beneficiary_name = Column(Text, nullable=True)
    processed = Column(Boolean, nullable=False, default=False)
    transaction_id = Column(Uuid, ForeignKey("transactions.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    payment = relationship("PaymentRecord", back_populates="bank_record", uselist=False)


class Transaction(Base):
    """Sale or expense whose payment fields are derived from linked payment records"""

    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("type IN ('sale', 'expense')", name="ck_transaction_type"),
        CheckConstraint(
            "payment_status IN ('unpaid', 'partially_paid', 'paid')",
            name="ck_transaction_payment_status",
        ),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Uuid, nullable=False, index=True)
    type = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    total = Column(Numeric(12, 2), nullable=False)
    amount_paid = Column(Numeric(12, 2), nullable=False, default=0)
    payment_status = Column(Text, nullable=False, default="unpaid")
    date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    payments = relationship("PaymentRecord", back_populates="transaction", order_by="PaymentRecord.created_at")


class PaymentRecord(Base):
    """Reconciliation link applying one bank record to one transaction"""

    __tablename__ = "payment_records"
    __table_args__ = (CheckConstraint("amount > 0", name="ck_payment_record_amount"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    business_id = Column(Uuid, nullable=False, index=True)
    transaction_id = Column(Uuid, ForeignKey("transactions.id"), nullable=False, index=True)
    bank_record_id = Column(Uuid, ForeignKey("bank_payment_records.id"), nullable=False, unique=True)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_date = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    transaction = relationship("Transaction", back_populates="payments")
    bank_record = relationship("BankRecord", back_populates="payment")


# PostgreSQL keeps amount_paid/payment_status consistent for writes that bypass
# the repositories. Same projection as domain.payments.derive_payment_status.
PAYMENT_STATUS_FUNCTION = DDL(
    """
CREATE OR REPLACE FUNCTION refresh_transaction_payment_status(target_id uuid)
RETURNS void AS $$
DECLARE
  total_paid numeric;
BEGIN
  PERFORM 1 FROM transactions WHERE id = target_id FOR UPDATE;

  SELECT COALESCE(SUM(amount), 0) INTO total_paid
  FROM payment_records
  WHERE transaction_id = target_id;

  UPDATE transactions
  SET
    amount_paid = total_paid,
    payment_status = CASE
      WHEN total_paid >= total THEN 'paid'
      WHEN total_paid > 0 THEN 'partially_paid'
      ELSE 'unpaid'
    END
  WHERE id = target_id;
END;
$$ LANGUAGE plpgsql;

CREATE OR REPLACE FUNCTION update_transaction_payment_status()
RETURNS TRIGGER AS $$
BEGIN
  IF TG_OP IN ('UPDATE', 'DELETE') THEN
    PERFORM refresh_transaction_payment_status(OLD.transaction_id);
  END IF;
  IF TG_OP IN ('INSERT', 'UPDATE') AND (TG_OP = 'INSERT' OR NEW.transaction_id IS DISTINCT FROM OLD.transaction_id) THEN
    PERFORM refresh_transaction_payment_status(NEW.transaction_id);
  END IF;
  RETURN NULL;
END;
$$ LANGUAGE plpgsql;

CREATE TRIGGER update_transaction_payment_status
  AFTER INSERT OR DELETE OR UPDATE OF amount, transaction_id ON payment_records
  FOR EACH ROW
  EXECUTE FUNCTION update_transaction_payment_status();
"""
)

event.listen(
    PaymentRecord.__table__,
    "after_create",
    PAYMENT_STATUS_FUNCTION.execute_if(dialect="postgresql"),
)

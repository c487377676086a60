"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

MONEY_IN = "money-in"
MONEY_OUT = "money-out"
RECORD_TYPES = (MONEY_IN, MONEY_OUT)


class StatementFormat(str, Enum):
    """Source format of an uploaded bank statement"""

    CSV = "csv"
    SPREADSHEET = "spreadsheet"
    PDF = "pdf"


class PaymentStatus(str, Enum):
    """Derived payment completeness of a sale or expense"""

    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"


@dataclass
class UploadedFile:
    """Statement file as received from the client"""

    filename: str
    content_type: Optional[str]
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class ExtractedRecord:
    """Bank statement line that passed validation"""

    date: date
    type: str  # "money-in" or "money-out"
    description: str
    amount: Decimal
    beneficiary_name: Optional[str] = None


@dataclass
class PaymentSummary:
    """Recomputed payment state of a transaction"""

    amount_paid: Decimal
    payment_status: PaymentStatus

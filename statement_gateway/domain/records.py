"""Output contract for the extraction oracle and validation of its records"""

import json
import logging
import math
import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, List, Optional

from statement_gateway.domain.exceptions import UpstreamServiceError
from statement_gateway.domain.models import ExtractedRecord, RECORD_TYPES
from statement_gateway.utils.date_utils import parse_strict_iso_date

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
# Amounts are stored as Numeric(12, 2)
MAX_AMOUNT = Decimal("1e10")

_CODE_FENCE = re.compile(r"^```[a-zA-Z]*\s*\n?(.*?)\n?\s*```$", re.S)

SYSTEM_INSTRUCTION = (
    "You are a financial data analyst that extracts structured data from bank statements. "
    "Always respond with valid JSON only."
)

EXTRACTION_PROMPT = """
You are a financial data analyst. Analyze the following bank statement data and extract transaction records.

IMPORTANT INSTRUCTIONS:
1. Return ONLY a valid JSON object with a "records" array
2. Each record must have exactly these fields:
   - date: string in YYYY-MM-DD format
   - type: either "money-in" or "money-out"
   - description: string describing the transaction
   - amount: positive number (always positive, regardless of type)
   - beneficiary_name: string or null (the person/company involved)

3. Rules for determining type:
   - "money-in": deposits, credits, incoming payments, salary, sales
   - "money-out": withdrawals, debits, outgoing payments, expenses, purchases

4. Clean and standardize the data:
   - Remove any currency symbols from amounts
   - Ensure dates are in YYYY-MM-DD format
   - Clean up description text
   - Extract meaningful beneficiary names

5. If a row has both money-in and money-out values, create separate records for each

Here is the bank statement data to analyze:

{statement}

Return the response in this exact JSON format:
{{
  "records": [
    {{
      "date": "2025-01-15",
      "type": "money-in",
      "description": "Salary Payment",
      "amount": 5000.00,
      "beneficiary_name": "Employer Name"
    }}
  ]
}}
"""


def build_extraction_prompt(statement_text: str) -> str:
    return EXTRACTION_PROMPT.format(statement=statement_text)


def strip_code_fences(content: str) -> str:
    """Remove a ``` or ```json fence wrapped around the whole answer"""
    content = content.strip()
    match = _CODE_FENCE.match(content)
    return match.group(1).strip() if match else content


def validate_record(raw: Any) -> Optional[ExtractedRecord]:
    """
    Validate one record from the oracle.

    Returns None when the record must be dropped:
    - date not a real calendar date in strict YYYY-MM-DD form
    - type not exactly "money-in" or "money-out"
    - description missing or blank
    - amount not a finite number (strings and booleans included), or too
      large for a 12-digit column

    The sign of ``amount`` is carried by ``type``, so the absolute value is kept.
    """
    if not isinstance(raw, dict):
        return None

    record_date = parse_strict_iso_date(raw.get("date"))
    if record_date is None:
        return None

    record_type = raw.get("type")
    if record_type not in RECORD_TYPES:
        return None

    description = raw.get("description")
    if not isinstance(description, str) or not description.strip():
        return None

    amount = raw.get("amount")
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        return None
    if isinstance(amount, float) and not math.isfinite(amount):
        return None

    try:
        amount = abs(Decimal(str(amount))).quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None
    if amount >= MAX_AMOUNT:
        return None

    beneficiary = raw.get("beneficiary_name")
    if not isinstance(beneficiary, str) or not beneficiary.strip():
        beneficiary = None
    else:
        beneficiary = beneficiary.strip()

    return ExtractedRecord(
        date=record_date,
        type=record_type,
        description=description.strip(),
        amount=amount,
        beneficiary_name=beneficiary,
    )


def parse_extraction_response(content: str) -> List[Any]:
    """
    Parse the oracle's answer and return its raw ``records`` array.

    No partial acceptance: a malformed answer fails the whole request.

    Raises:
        UpstreamServiceError: Answer is not JSON or has no ``records`` array
    """
    try:
        result = json.loads(strip_code_fences(content))
    except (json.JSONDecodeError, TypeError) as e:
        logger.error("Failed to parse language model response", extra={"content": str(content)[:500]})
        raise UpstreamServiceError("Failed to parse AI analysis result") from e

    if not isinstance(result, dict) or not isinstance(result.get("records"), list):
        raise UpstreamServiceError("Invalid analysis result format - missing records array")

    return result["records"]


def validate_records(raw_records: List[Any]) -> List[ExtractedRecord]:
    """Keep the records that pass validate_record, logging the rest"""
    records: List[ExtractedRecord] = []
    for raw in raw_records:
        record = validate_record(raw)
        if record is None:
            logger.warning("Skipping invalid record", extra={"record": raw})
            continue
        records.append(record)
    return records

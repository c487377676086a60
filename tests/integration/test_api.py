"""Integration tests for API endpoints"""

import uuid
import pytest
from datetime import date
from decimal import Decimal
from typing import List
from unittest.mock import AsyncMock, MagicMock, patch
from fastapi.testclient import TestClient
from statement_gateway.domain.exceptions import NoValidRecordsError, UpstreamServiceError
from statement_gateway.domain.content import extract_text
from statement_gateway.domain.models import ExtractedRecord, StatementFormat

SALARY_CSV = b"date,description,amount,beneficiary\n2025-01-15,Salary Payment,5000.00,Employer Name\n"


def upload(client: TestClient, business_id, content: bytes = SALARY_CSV, filename="statement.csv", content_type="text/csv"):
    return client.post(
        "/v1/bank-statements",
        files={"file": (filename, content, content_type)},
        data={"businessId": str(business_id)},
    )


def create_sale(client: TestClient, business_id, total="100.00") -> dict:
    response = client.post(
        "/v1/transactions",
        json={"business_id": str(business_id), "type": "sale", "total": total, "date": "2025-01-01"},
    )
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def ingested(client: TestClient, business_id, sample_records: List[ExtractedRecord]) -> List[dict]:
    """Upload a statement whose extraction yields the sample records"""
    with patch(
        "statement_gateway.infrastructure.clients.llm.TransactionExtractionClient.extract",
        new=AsyncMock(return_value=sample_records),
    ):
        response = upload(client, business_id)
    assert response.status_code == 200
    return response.json()["records"]


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "bank_records_ingested_total" in response.text


def test_request_id_is_propagated(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


@patch("statement_gateway.infrastructure.clients.llm.TransactionExtractionClient.extract")
def test_upload_csv(mock_extract: AsyncMock, client: TestClient, business_id, salary_record):
    """Test POST /v1/bank-statements with a one-line CSV"""
    mock_extract.return_value = [salary_record]

    response = upload(client, business_id)

    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Successfully processed 1 bank payment records"
    assert data["records_processed"] == 1
    record = data["records"][0]
    assert record["date"] == "2025-01-15"
    assert record["type"] == "money-in"
    assert Decimal(record["amount"]) == Decimal("5000.00")
    assert record["beneficiary_name"] == "Employer Name"
    assert record["processed"] is False
    assert record["business_id"] == str(business_id)

    # The extractor sees the CSV text unchanged
    mock_extract.assert_awaited_once_with(SALARY_CSV.decode("utf-8"))


@patch("statement_gateway.infrastructure.clients.llm.TransactionExtractionClient.extract")
@patch("statement_gateway.api.v1.statements.extract_text")
def test_oversized_upload_rejected_before_extraction(
    mock_extract_text: MagicMock, mock_extract: AsyncMock, client: TestClient, business_id
):
    """A 6MB PDF is refused with 413 and nothing downstream runs"""
    response = upload(
        client, business_id, content=b"%PDF-1.4\n" + b"0" * (6 * 1024 * 1024), filename="big.pdf", content_type="application/pdf"
    )

    assert response.status_code == 413
    assert response.json() == {"error": "File size must be less than 5MB"}
    mock_extract_text.assert_not_called()
    mock_extract.assert_not_called()


@patch("statement_gateway.infrastructure.clients.llm.TransactionExtractionClient.extract")
@patch("statement_gateway.api.v1.statements.run_in_threadpool")
def test_text_extraction_runs_in_threadpool(
    mock_threadpool: AsyncMock, mock_extract: AsyncMock, client: TestClient, business_id, salary_record
):
    """Parsing happens off the event loop"""
    mock_threadpool.return_value = SALARY_CSV.decode("utf-8")
    mock_extract.return_value = [salary_record]

    response = upload(client, business_id)

    assert response.status_code == 200
    mock_threadpool.assert_awaited_once()
    func, data, statement_format = mock_threadpool.await_args.args[:3]
    assert func is extract_text
    assert data == SALARY_CSV
    assert statement_format is StatementFormat.CSV


def test_unsupported_type_rejected(client: TestClient, business_id):
    response = upload(client, business_id, content=b"just some notes here", filename="notes.txt", content_type="text/plain")

    assert response.status_code == 415
    assert "error" in response.json()


def test_missing_file_rejected(client: TestClient, business_id):
    response = client.post("/v1/bank-statements", data={"businessId": str(business_id)})

    assert response.status_code == 400
    assert response.json()["error"]


def test_missing_business_id_rejected(client: TestClient):
    response = client.post("/v1/bank-statements", files={"file": ("statement.csv", SALARY_CSV, "text/csv")})

    assert response.status_code == 400


def test_malformed_business_id_rejected(client: TestClient):
    response = upload(client, "not-a-uuid")

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid business ID format"}


def test_insufficient_content_is_extraction_error(client: TestClient, business_id):
    response = upload(client, business_id, content=b"a,b\n")

    assert response.status_code == 500
    assert "insufficient data" in response.json()["error"]


@patch("statement_gateway.infrastructure.clients.llm.TransactionExtractionClient.extract")
def test_upstream_failure_returns_502(mock_extract: AsyncMock, client: TestClient, business_id):
    mock_extract.side_effect = UpstreamServiceError("Language model API error: 503 Service Unavailable", 503)

    response = upload(client, business_id)

    assert response.status_code == 502
    assert response.json() == {"error": "Language model API error: 503 Service Unavailable"}


@patch("statement_gateway.infrastructure.clients.llm.TransactionExtractionClient.extract")
def test_no_valid_records_persists_nothing(mock_extract: AsyncMock, client: TestClient, business_id):
    mock_extract.side_effect = NoValidRecordsError("No valid bank records found in the uploaded file")

    response = upload(client, business_id)

    assert response.status_code == 502
    listing = client.get(f"/v1/businesses/{business_id}/bank-records").json()
    assert listing["total"] == 0


def test_list_bank_records(client: TestClient, business_id, ingested):
    response = client.get(
        f"/v1/businesses/{business_id}/bank-records",
        params={"type": "money-out", "sort_by": "amount", "sort_dir": "asc"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert [r["description"] for r in data["records"]] == ["Stock purchase", "Office rent January"]


def test_list_bank_records_search_and_paging(client: TestClient, business_id, ingested):
    data = client.get(f"/v1/businesses/{business_id}/bank-records", params={"search": "acme"}).json()
    assert data["total"] == 1

    data = client.get(f"/v1/businesses/{business_id}/bank-records", params={"page": 2, "per_page": 3}).json()
    assert data["total"] == 4
    assert len(data["records"]) == 1


def test_list_bank_records_rejects_unknown_sort(client: TestClient, business_id):
    response = client.get(f"/v1/businesses/{business_id}/bank-records", params={"sort_by": "created_at"})

    assert response.status_code == 422
    assert response.json()["error"].startswith("Invalid request")


def test_delete_bank_record(client: TestClient, business_id, ingested):
    record_id = ingested[0]["id"]

    response = client.delete(f"/v1/bank-records/{record_id}")
    assert response.status_code == 200
    assert response.json() == {"message": "Record deleted successfully"}

    response = client.delete(f"/v1/bank-records/{record_id}")
    assert response.status_code == 404


def test_create_and_get_transaction(client: TestClient, business_id):
    sale = create_sale(client, business_id)

    assert sale["payment_status"] == "unpaid"
    assert Decimal(sale["amount_paid"]) == Decimal("0")

    response = client.get(f"/v1/transactions/{sale['id']}")
    assert response.status_code == 200
    assert response.json()["payments"] == []


def test_get_transaction_not_found(client: TestClient):
    response = client.get(f"/v1/transactions/{uuid.uuid4()}")

    assert response.status_code == 404
    assert response.json() == {"error": "Transaction not found"}


def test_payment_record_lifecycle(client: TestClient, business_id, ingested):
    """Create, update and delete a payment record through the API"""
    sale = create_sale(client, business_id)

    response = client.post(
        "/v1/payment-records",
        json={
            "business_id": str(business_id),
            "transaction_id": sale["id"],
            "bank_record_id": ingested[0]["id"],
            "amount": "40.00",
            "payment_date": "2025-01-02",
        },
    )
    assert response.status_code == 201
    body = response.json()
    assert body["transaction"]["payment_status"] == "partially_paid"
    payment_id = body["payment"]["id"]

    response = client.patch(f"/v1/payment-records/{payment_id}", json={"amount": "100.00"})
    assert response.status_code == 200
    assert response.json()["transaction"]["payment_status"] == "paid"

    response = client.delete(f"/v1/payment-records/{payment_id}")
    assert response.status_code == 200
    assert response.json()["transaction"]["payment_status"] == "unpaid"

    listing = client.get(f"/v1/businesses/{business_id}/bank-records").json()
    assert listing["total"] == 4


def test_duplicate_payment_link_conflicts(client: TestClient, business_id, ingested):
    sale = create_sale(client, business_id)
    payload = {
        "business_id": str(business_id),
        "transaction_id": sale["id"],
        "bank_record_id": ingested[0]["id"],
        "amount": "40.00",
        "payment_date": "2025-01-02",
    }

    assert client.post("/v1/payment-records", json=payload).status_code == 201

    response = client.post("/v1/payment-records", json=payload)
    assert response.status_code == 409

    # The rejected link did not change the transaction
    transaction = client.get(f"/v1/transactions/{sale['id']}").json()
    assert Decimal(transaction["amount_paid"]) == Decimal("40.00")


def test_reconciled_bank_record_cannot_be_deleted(client: TestClient, business_id, ingested):
    sale = create_sale(client, business_id)
    client.post(
        "/v1/payment-records",
        json={
            "business_id": str(business_id),
            "transaction_id": sale["id"],
            "bank_record_id": ingested[0]["id"],
            "amount": "40.00",
            "payment_date": "2025-01-02",
        },
    )

    response = client.delete(f"/v1/bank-records/{ingested[0]['id']}")

    assert response.status_code == 409


def test_payment_amount_must_be_positive(client: TestClient, business_id, ingested):
    sale = create_sale(client, business_id)

    response = client.post(
        "/v1/payment-records",
        json={
            "business_id": str(business_id),
            "transaction_id": sale["id"],
            "bank_record_id": ingested[0]["id"],
            "amount": "0",
            "payment_date": "2025-01-02",
        },
    )

    assert response.status_code == 422


def test_delete_unknown_payment_record(client: TestClient):
    response = client.delete(f"/v1/payment-records/{uuid.uuid4()}")

    assert response.status_code == 404

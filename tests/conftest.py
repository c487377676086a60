"""Pytest fixtures for testing"""

import uuid
import pytest
from datetime import date
from decimal import Decimal
from typing import Generator, List
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from statement_gateway.api.main import create_app
from statement_gateway.infrastructure.database.models import Base
from statement_gateway.infrastructure.database.session import get_db
from statement_gateway.domain.models import ExtractedRecord


# Test database
TEST_DATABASE_URL = "sqlite:///./test_statement_gateway.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def business_id() -> uuid.UUID:
    return uuid.UUID("7a0c6f1e-2b1d-4d52-9a57-1f1b8e0c3d11")


@pytest.fixture
def salary_record() -> ExtractedRecord:
    """The record the model returns for the salary CSV line"""
    return ExtractedRecord(
        date=date(2025, 1, 15),
        type="money-in",
        description="Salary Payment",
        amount=Decimal("5000.00"),
        beneficiary_name="Employer Name",
    )


@pytest.fixture
def sample_records() -> List[ExtractedRecord]:
    """A small validated statement: income, rent and two supplier payments"""
    return [
        ExtractedRecord(date(2025, 1, 1), "money-in", "Customer payment INV-1001", Decimal("1200.00"), "Acme Ltd"),
        ExtractedRecord(date(2025, 1, 3), "money-out", "Office rent January", Decimal("800.00"), "City Properties"),
        ExtractedRecord(date(2025, 1, 7), "money-out", "Stock purchase", Decimal("350.50"), "Wholesale Foods"),
        ExtractedRecord(date(2025, 1, 9), "money-in", "Card sales settlement", Decimal("420.75"), None),
    ]

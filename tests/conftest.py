"""Pytest fixtures for testing"""

import random
import pytest
from datetime import datetime, timezone
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from universe_bank.api.main import create_app
from universe_bank.infrastructure.database.models import Base
from universe_bank.infrastructure.database.session import get_db
from universe_bank.domain.models import CreditFeatures, CreditModelState, LoanLedger


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
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
def model() -> CreditModelState:
    """Untrained model as used on first run"""
    return CreditModelState.default()


@pytest.fixture
def ledger() -> LoanLedger:
    return LoanLedger()


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def random_features() -> list[CreditFeatures]:
    """Feature vectors spread over [0, 1]^6, including the corners"""
    rng = random.Random(7)
    vectors = [
        CreditFeatures(0.0, 0.0, 0.0, 0.0, 0.0, 0.0),
        CreditFeatures(1.0, 1.0, 1.0, 1.0, 1.0, 1.0),
    ]
    for _ in range(50):
        vectors.append(CreditFeatures(*(rng.random() for _ in range(6))))
    return vectors

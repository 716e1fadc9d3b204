"""Data access layer for the credit model and loan ledger documents"""

import logging
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
from universe_bank.infrastructure.database.models import StateRecord
from universe_bank.domain.exceptions import StateCorruptedError
from universe_bank.domain.models import CreditModelState, LoanLedger

logger = logging.getLogger(__name__)

CREDIT_MODEL_KEY = "credit_model"
LOAN_LEDGER_KEY = "loan_ledger"


class StateRepository:
    """Whole-document key/value store; last writer wins"""

    def __init__(self, db: Session):
        self.db = db

    def get_document(self, key: str) -> Optional[Dict[str, Any]]:
        record = self.db.get(StateRecord, key)
        return record.document if record else None

    def put_document(self, key: str, document: Dict[str, Any]) -> None:
        record = self.db.get(StateRecord, key)
        if record is None:
            self.db.add(StateRecord(key=key, document=document))
        else:
            record.document = document
        self.db.flush()


class CreditModelRepository(StateRepository):
    """Repository for the credit model parameters"""

    def load(self) -> CreditModelState:
        """Stored model, or the untrained default on first use"""
        document = self.get_document(CREDIT_MODEL_KEY)
        if document is None:
            logger.info("No stored credit model, starting from defaults")
            return CreditModelState.default()
        try:
            return CreditModelState.from_dict(document)
        except (KeyError, TypeError, ValueError) as e:
            raise StateCorruptedError(f"Invalid credit model document: {e}") from e

    def save(self, model: CreditModelState) -> None:
        self.put_document(CREDIT_MODEL_KEY, model.to_dict())


class LoanLedgerRepository(StateRepository):
    """Repository for the loan ledger"""

    def load(self) -> LoanLedger:
        """Stored ledger, or an empty one on first use"""
        document = self.get_document(LOAN_LEDGER_KEY)
        if document is None:
            return LoanLedger()
        try:
            return LoanLedger.from_dict(document)
        except (KeyError, TypeError, ValueError) as e:
            raise StateCorruptedError(f"Invalid loan ledger document: {e}") from e

    def save(self, ledger: LoanLedger) -> None:
        self.put_document(LOAN_LEDGER_KEY, ledger.to_dict())

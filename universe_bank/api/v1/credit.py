"""Credit endpoints - borrower score report and model parameters"""

from dataclasses import asdict
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from universe_bank.api.v1.schemas import CreditFeaturesSchema, CreditModelResponse, CreditScoreResponse
from universe_bank.api.dependencies import get_identity_registered
from universe_bank.infrastructure.database.session import get_db
from universe_bank.infrastructure.database.repositories import CreditModelRepository, LoanLedgerRepository
from universe_bank.domain.lending import credit_report

router = APIRouter()


@router.get("/credit/score", response_model=CreditScoreResponse)
def get_credit_score(
    borrower: str = Query(..., min_length=1, description="Borrower address"),
    db: Session = Depends(get_db),
    identity_registered: bool = Depends(get_identity_registered),
):
    """
    Score a borrower with the current model.

    Returns:
        Score, feature breakdown and the largest loan the score allows
    """
    model = CreditModelRepository(db).load()
    ledger = LoanLedgerRepository(db).load()
    report = credit_report(model, ledger, borrower, identity_registered)

    return CreditScoreResponse(
        borrower=report.borrower,
        score=report.score,
        features=CreditFeaturesSchema(**asdict(report.features)),
        model_version=report.model_version,
        max_eligible=report.max_eligible,
    )


@router.get("/credit/model", response_model=CreditModelResponse)
def get_credit_model(db: Session = Depends(get_db)):
    """Current weights, bias and lending parameters"""
    model = CreditModelRepository(db).load()
    return CreditModelResponse(**model.to_dict())

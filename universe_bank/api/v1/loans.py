"""Loan lifecycle endpoints - apply, repay, active loans and ledger listing"""

import time
import logging
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from universe_bank.api.v1.schemas import (
    ActiveLoanItem,
    ActiveLoansResponse,
    LoanApplicationResponse,
    LoanListResponse,
    LoanRequest,
    LoanSchema,
    LoanSummarySchema,
    RepaymentResponse,
)
from universe_bank.api.dependencies import get_identity_registered
from universe_bank.infrastructure.database.session import get_db
from universe_bank.infrastructure.database.repositories import CreditModelRepository, LoanLedgerRepository
from universe_bank.domain.lending import apply_for_loan, repay_loan
from universe_bank.domain.ledger import get_active_loans, get_loan_summary
from universe_bank.domain.exceptions import InvalidLoanAmountError, NoActiveLoanError, StateCorruptedError
from universe_bank.infrastructure.observability.metrics import (
    no_active_loan_counter,
    record_decision,
    record_repayment,
)
from universe_bank.infrastructure.observability.logging import log_decision, log_repayment

router = APIRouter()


def to_loan_schema(loan) -> LoanSchema:
    return LoanSchema(**loan.to_dict())


@router.post("/loans/apply", response_model=LoanApplicationResponse)
def create_loan_application(
    request_body: LoanRequest,
    db: Session = Depends(get_db),
    identity_registered: bool = Depends(get_identity_registered),
):
    """
    Score the borrower and book a loan if approved.

    Flow:
    1. Load credit model and loan ledger
    2. Score the borrower from their own loan history
    3. Evaluate the request against threshold and credit limit
    4. Persist the ledger if a loan was created
    """
    start_time = time.time()

    try:
        model = CreditModelRepository(db).load()
        ledger_repo = LoanLedgerRepository(db)
        ledger = ledger_repo.load()

        result = apply_for_loan(model, ledger, request_body.borrower, request_body.amount, identity_registered)

        if result.loan is not None:
            ledger_repo.save(ledger)
            db.commit()

        duration_ms = (time.time() - start_time) * 1000
        record_decision(result.approved, request_body.amount)
        log_decision(request_body.borrower, result.approved, result.score, result.max_amount, duration_ms)

        return LoanApplicationResponse(
            approved=result.approved,
            score=result.score,
            max_amount=result.max_amount,
            interest_rate=result.interest_rate,
            reason=result.reason,
            total_repayment=result.loan.total_owed if result.loan else None,
            loan=to_loan_schema(result.loan) if result.loan else None,
        )

    except InvalidLoanAmountError as e:
        db.rollback()
        raise HTTPException(status_code=422, detail=str(e))

    except StateCorruptedError as e:
        db.rollback()
        logging.error(f"Corrupted state: {e}")
        raise HTTPException(status_code=500, detail="Stored credit state is unreadable")

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/loans/repay", response_model=RepaymentResponse)
def create_repayment(
    request_body: LoanRequest,
    db: Session = Depends(get_db),
    identity_registered: bool = Depends(get_identity_registered),
):
    """
    Apply a payment to the borrower's oldest active loan.

    Overpayment is capped at the outstanding balance; the excess is not
    carried to the next loan. A full repayment retrains the model.
    """
    try:
        model_repo = CreditModelRepository(db)
        ledger_repo = LoanLedgerRepository(db)
        model = model_repo.load()
        ledger = ledger_repo.load()

        result, updated_model = repay_loan(model, ledger, request_body.borrower, request_body.amount, identity_registered)

        ledger_repo.save(ledger)
        if updated_model is not model:
            model_repo.save(updated_model)
        db.commit()

        record_repayment(result.fully_repaid, updated_model.version)
        log_repayment(
            request_body.borrower,
            result.loan.id,
            result.amount_applied,
            result.fully_repaid,
            updated_model.version,
        )

        return RepaymentResponse(
            loan=to_loan_schema(result.loan),
            amount_applied=result.amount_applied,
            remaining_balance=result.remaining_balance,
            fully_repaid=result.fully_repaid,
            model_version=updated_model.version,
        )

    except NoActiveLoanError as e:
        db.rollback()
        no_active_loan_counter.inc()
        logging.warning(f"Repayment rejected: {e}")
        raise HTTPException(status_code=404, detail=str(e))

    except InvalidLoanAmountError as e:
        db.rollback()
        raise HTTPException(status_code=422, detail=str(e))

    except StateCorruptedError as e:
        db.rollback()
        logging.error(f"Corrupted state: {e}")
        raise HTTPException(status_code=500, detail="Stored credit state is unreadable")

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/loans/active", response_model=ActiveLoansResponse)
def list_active_loans(
    borrower: str = Query(..., min_length=1, description="Borrower address"),
    db: Session = Depends(get_db),
):
    """Active loans for a borrower, oldest first (repayment order)"""
    ledger = LoanLedgerRepository(db).load()
    items = [
        ActiveLoanItem(loan=to_loan_schema(loan), total_owed=loan.total_owed, remaining=loan.outstanding)
        for loan in get_active_loans(ledger, borrower)
    ]
    return ActiveLoansResponse(borrower=borrower, loans=items)


@router.get("/loans", response_model=LoanListResponse)
def list_loans(db: Session = Depends(get_db)):
    """Full loan history with ledger totals"""
    ledger = LoanLedgerRepository(db).load()
    summary = get_loan_summary(ledger)
    return LoanListResponse(
        loans=[to_loan_schema(loan) for loan in ledger.loans],
        summary=LoanSummarySchema(**vars(summary)),
    )

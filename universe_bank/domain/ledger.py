"""Loan ledger operations - loan creation, lifecycle queries and summaries"""

import uuid
from datetime import datetime
from typing import List, Optional

from universe_bank.domain.models import Loan, LoanLedger, LoanStatus, LoanSummary
from universe_bank.utils.date_utils import add_days


def create_loan(
    borrower: str,
    amount: float,
    interest_rate: float,
    credit_score: int,
    disbursed_at: datetime,
    term_days: int,
) -> Loan:
    """New active loan due `term_days` after disbursal"""
    return Loan(
        id=str(uuid.uuid4()),
        borrower=borrower,
        amount=amount,
        interest_rate=interest_rate,
        credit_score_at_origination=credit_score,
        disbursed_at=disbursed_at,
        due_at=add_days(disbursed_at, term_days),
    )


def add_loan(ledger: LoanLedger, loan: Loan) -> LoanLedger:
    """Append a disbursed loan and account for it in total_disbursed"""
    ledger.append(loan)
    ledger.total_disbursed += loan.amount
    return ledger


def borrower_loans(ledger: LoanLedger, borrower: str) -> List[Loan]:
    return [loan for loan in ledger.loans if loan.borrower == borrower]


def get_active_loans(ledger: LoanLedger, borrower: Optional[str] = None) -> List[Loan]:
    """Active loans oldest first (this is the repayment queue)"""
    return [
        loan
        for loan in ledger.loans
        if loan.is_active and (borrower is None or loan.borrower == borrower)
    ]


def repayment_history(loans: List[Loan]) -> List[int]:
    """Resolved outcomes in disbursal order: 1 = repaid, 0 = defaulted"""
    return [1 if loan.status == LoanStatus.REPAID else 0 for loan in loans if not loan.is_active]


def get_loan_summary(ledger: LoanLedger) -> LoanSummary:
    active = [loan for loan in ledger.loans if loan.status == LoanStatus.ACTIVE]
    repaid = [loan for loan in ledger.loans if loan.status == LoanStatus.REPAID]
    defaulted = [loan for loan in ledger.loans if loan.status == LoanStatus.DEFAULTED]

    return LoanSummary(
        total=len(ledger.loans),
        active=len(active),
        repaid=len(repaid),
        defaulted=len(defaulted),
        total_disbursed=ledger.total_disbursed,
        total_repaid=ledger.total_repaid,
        total_defaulted=ledger.total_defaulted,
        active_balance=sum(loan.amount - loan.repaid_amount for loan in active),
    )

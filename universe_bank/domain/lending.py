"""Loan lifecycle - application and repayment against explicit model/ledger state"""

import math
from datetime import datetime
from numbers import Real
from typing import Optional, Tuple

from universe_bank.config import settings
from universe_bank.domain.exceptions import InvalidLoanAmountError, NoActiveLoanError
from universe_bank.domain.ledger import add_loan, borrower_loans, create_loan, get_active_loans, repayment_history
from universe_bank.domain.models import (
    CreditFeatures,
    CreditModelState,
    CreditReport,
    LoanApplicationResult,
    LoanLedger,
    RepaymentResult,
    TrainingOutcome,
)
from universe_bank.domain.scoring import (
    calculate_credit_score,
    evaluate_loan_application,
    extract_features,
    round_half_up,
    score_probability,
    update_model,
)
from universe_bank.utils.date_utils import utcnow


def validate_amount(amount: object) -> float:
    """Reject non-numeric, non-finite and non-positive amounts"""
    if isinstance(amount, bool) or not isinstance(amount, Real):
        raise InvalidLoanAmountError(f"Amount must be a number, got {amount!r}")
    value = float(amount)
    if not math.isfinite(value) or value <= 0:
        raise InvalidLoanAmountError(f"Amount must be positive, got {amount!r}")
    return value


def borrower_features(ledger: LoanLedger, borrower: str, identity_registered: bool) -> CreditFeatures:
    """
    Features for a live borrower, built from that borrower's loans only.

    Without an indexer the ledger is the only activity source: each loan
    counts as two transactions on top of a base of five, deposits are not
    tracked and account age is a single period.
    """
    loans = borrower_loans(ledger, borrower)
    return extract_features(
        transaction_count=len(loans) * 2 + 5,
        repayment_history=repayment_history(loans),
        deposits=0,
        identity_registered=identity_registered,
        account_age=1,
        total_borrowed=sum(loan.amount for loan in loans),
        loan_count=len(loans),
    )


def apply_for_loan(
    model: CreditModelState,
    ledger: LoanLedger,
    borrower: str,
    amount: float,
    identity_registered: bool,
    now: Optional[datetime] = None,
) -> LoanApplicationResult:
    """
    Score the borrower and, on approval, book a new active loan.

    The ledger is mutated only when the loan is approved. Persisting it is
    the caller's job.
    """
    amount = validate_amount(amount)

    features = borrower_features(ledger, borrower, identity_registered)
    score = calculate_credit_score(features, model)
    decision = evaluate_loan_application(score, amount, model)

    result = LoanApplicationResult(
        approved=decision.approved,
        score=decision.score,
        max_amount=decision.max_amount,
        interest_rate=decision.interest_rate,
        reason=decision.reason,
    )
    if not decision.approved:
        return result

    loan = create_loan(
        borrower=borrower,
        amount=amount,
        interest_rate=decision.interest_rate,
        credit_score=score,
        disbursed_at=now or utcnow(),
        term_days=settings.loan_term_days,
    )
    add_loan(ledger, loan)
    result.loan = loan
    return result


def repay_loan(
    model: CreditModelState,
    ledger: LoanLedger,
    borrower: str,
    amount: float,
    identity_registered: bool,
    now: Optional[datetime] = None,
) -> Tuple[RepaymentResult, CreditModelState]:
    """
    Apply a payment to the borrower's oldest active loan.

    Only the oldest loan receives money, even when a newer one has a smaller
    balance. Anything above its outstanding balance is dropped, not carried
    over or refunded. A payment that clears the loan (within
    settings.repayment_epsilon) marks it repaid and runs one training step on
    the borrower's updated history; this is the only way the live model learns.

    Returns the repayment result and the model, retrained or unchanged.
    """
    amount = validate_amount(amount)

    active = get_active_loans(ledger, borrower)
    if not active:
        raise NoActiveLoanError(f"No active loans found for {borrower}")

    loan = active[0]
    outstanding = loan.outstanding
    amount_applied = min(amount, outstanding)
    loan.repaid_amount += amount_applied

    fully_repaid = loan.repaid_amount >= loan.total_owed - settings.repayment_epsilon
    if fully_repaid:
        loan.mark_repaid(now or utcnow())
        ledger.total_repaid += loan.repaid_amount

        features = borrower_features(ledger, borrower, identity_registered)
        model = update_model(model, [TrainingOutcome(features=features, repaid=True)])

    result = RepaymentResult(
        loan=loan,
        amount_applied=amount_applied,
        remaining_balance=0.0 if fully_repaid else outstanding - amount_applied,
        fully_repaid=fully_repaid,
    )
    return result, model


def credit_report(
    model: CreditModelState,
    ledger: LoanLedger,
    borrower: str,
    identity_registered: bool,
) -> CreditReport:
    """Current score, feature breakdown and maximum eligible loan"""
    features = borrower_features(ledger, borrower, identity_registered)
    score = calculate_credit_score(features, model)
    return CreditReport(
        borrower=borrower,
        score=score,
        features=features,
        model_version=model.version,
        max_eligible=round_half_up(score_probability(score) * model.max_loan_multiplier),
    )

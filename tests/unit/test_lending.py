"""Unit tests for the loan ledger and loan lifecycle"""

import math
import pytest
from datetime import timedelta
from unittest.mock import MagicMock
from universe_bank.domain.exceptions import InvalidLoanAmountError, InvalidLoanTransitionError, NoActiveLoanError
from universe_bank.domain.ledger import add_loan, create_loan, get_active_loans, get_loan_summary
from universe_bank.domain.lending import apply_for_loan, borrower_features, credit_report, repay_loan
from universe_bank.domain.models import LoanLedger, LoanStatus

ALICE = "0xA11CE"
BOB = "0xB0B"


def _assert_ledger_consistent(ledger: LoanLedger) -> None:
    assert ledger.total_disbursed == pytest.approx(sum(loan.amount for loan in ledger.loans))
    assert ledger.total_repaid == pytest.approx(
        sum(loan.repaid_amount for loan in ledger.loans if loan.status == LoanStatus.REPAID)
    )
    for loan in ledger.loans:
        assert loan.repaid_amount <= loan.total_owed + 1e-9


def test_apply_for_loan_approves_new_borrower(model, ledger, now):
    """Test a fresh borrower is scored on the bias alone and gets a 30-day loan"""
    result = apply_for_loan(model, ledger, ALICE, 100, identity_registered=True, now=now)

    assert result.approved is True
    assert result.score == 750
    assert result.max_amount == 409
    assert result.interest_rate == 0.1145
    assert result.loan is not None
    assert result.loan.status == LoanStatus.ACTIVE
    assert result.loan.borrower == ALICE
    assert result.loan.credit_score_at_origination == 750
    assert result.loan.disbursed_at == now
    assert result.loan.due_at == now + timedelta(days=30)
    assert ledger.loans == [result.loan]
    assert ledger.get(result.loan.id) is result.loan
    assert ledger.total_disbursed == 100


def test_apply_for_loan_denial_changes_nothing(model, ledger):
    """Test an over-limit request returns the decision without booking a loan"""
    result = apply_for_loan(model, ledger, ALICE, 1_000, identity_registered=False)

    assert result.approved is False
    assert result.loan is None
    assert result.max_amount == 409
    assert ledger.loans == []
    assert ledger.total_disbursed == 0


@pytest.mark.parametrize("amount", [0, -5, -0.01, "100", None, True, math.nan, math.inf])
def test_invalid_amount_rejected_before_state_is_touched(amount):
    """Test bad amounts fail before the model or ledger are read"""
    state = MagicMock()

    with pytest.raises(InvalidLoanAmountError):
        apply_for_loan(state, state, ALICE, amount, identity_registered=False)
    with pytest.raises(InvalidLoanAmountError):
        repay_loan(state, state, ALICE, amount, identity_registered=False)

    assert state.mock_calls == []


def test_repay_without_active_loan_fails(model, ledger, now):
    """Test repayment needs an active loan for that borrower"""
    with pytest.raises(NoActiveLoanError):
        repay_loan(model, ledger, ALICE, 10, identity_registered=False)

    apply_for_loan(model, ledger, BOB, 50, identity_registered=False, now=now)
    with pytest.raises(NoActiveLoanError):
        repay_loan(model, ledger, ALICE, 10, identity_registered=False)
    assert ledger.loans[0].repaid_amount == 0


def test_partial_repayment(model, ledger, now):
    """Test a partial payment reduces the balance and does not train"""
    loan = apply_for_loan(model, ledger, ALICE, 100, identity_registered=False, now=now).loan

    result, updated = repay_loan(model, ledger, ALICE, 50, identity_registered=False, now=now)

    assert result.loan is loan
    assert result.amount_applied == 50
    assert result.remaining_balance == pytest.approx(100 * 1.1145 - 50)
    assert result.fully_repaid is False
    assert loan.status == LoanStatus.ACTIVE
    assert loan.repaid_amount == 50
    assert ledger.total_repaid == 0
    assert updated is model


def test_full_repayment_trains_model(model, ledger, now):
    """Test clearing a loan marks it repaid and runs one training step"""
    loan = apply_for_loan(model, ledger, ALICE, 100, identity_registered=True, now=now).loan
    paid_at = now + timedelta(days=10)

    result, updated = repay_loan(model, ledger, ALICE, loan.total_owed, identity_registered=True, now=paid_at)

    assert result.fully_repaid is True
    assert result.remaining_balance == 0
    assert loan.status == LoanStatus.REPAID
    assert loan.repaid_at == paid_at
    assert ledger.total_repaid == pytest.approx(111.45)
    assert updated.version == model.version + 1
    assert updated.training_samples == 1
    assert updated.bias > model.bias
    # Trained on the updated history: one repaid loan
    assert updated.weights.repayment_rate > 0


def test_overpayment_is_capped(model, ledger, now):
    """Test paying more than owed never over-credits the loan (excess is dropped)"""
    loan = apply_for_loan(model, ledger, ALICE, 100, identity_registered=False, now=now).loan

    result, _ = repay_loan(model, ledger, ALICE, 500, identity_registered=False, now=now)

    assert result.amount_applied == pytest.approx(loan.total_owed)
    assert result.remaining_balance == 0
    assert loan.repaid_amount <= loan.total_owed
    assert ledger.total_repaid == pytest.approx(loan.total_owed)


def test_repayment_within_epsilon_counts_as_full(model, ledger, now):
    """Test a payment a fraction of a cent short still clears the loan"""
    loan = apply_for_loan(model, ledger, ALICE, 100, identity_registered=False, now=now).loan

    result, _ = repay_loan(model, ledger, ALICE, loan.total_owed - 0.005, identity_registered=False, now=now)

    assert result.fully_repaid is True
    assert result.remaining_balance == 0


def test_repayment_goes_to_oldest_loan(model, ledger, now):
    """Test payments hit the oldest active loan even if a newer one is smaller"""
    older = apply_for_loan(model, ledger, ALICE, 200, identity_registered=False, now=now).loan
    newer = apply_for_loan(model, ledger, ALICE, 10, identity_registered=False, now=now + timedelta(hours=1)).loan
    assert newer is not None

    result, _ = repay_loan(model, ledger, ALICE, 20, identity_registered=False, now=now)

    assert result.loan is older
    assert older.repaid_amount == 20
    assert newer.repaid_amount == 0
    assert get_active_loans(ledger, ALICE) == [older, newer]


def test_ledger_totals_stay_consistent(model, ledger, now):
    """Test running totals match per-loan sums after mixed operations"""
    current = model
    for borrower, amount in [(ALICE, 100), (BOB, 40), (ALICE, 60), (BOB, 1_000)]:
        apply_for_loan(current, ledger, borrower, amount, identity_registered=False, now=now)
        _assert_ledger_consistent(ledger)

    for borrower, payment in [(ALICE, 30), (BOB, 500), (ALICE, 200), (ALICE, 5), (ALICE, 100)]:
        _, current = repay_loan(current, ledger, borrower, payment, identity_registered=False, now=now)
        _assert_ledger_consistent(ledger)

    summary = get_loan_summary(ledger)
    assert summary.total == 3
    assert summary.repaid == 3
    assert summary.active == 0
    assert summary.active_balance == 0
    assert current.version == 3


def test_borrower_features_use_only_that_borrowers_loans(model, ledger, now):
    """Test another borrower's defaults do not leak into the features"""
    bob_loan = apply_for_loan(model, ledger, BOB, 50, identity_registered=False, now=now).loan
    bob_loan.mark_defaulted(now)

    alice = borrower_features(ledger, ALICE, identity_registered=True)
    bob = borrower_features(ledger, BOB, identity_registered=False)

    assert alice.repayment_rate == 0.5
    assert alice.transaction_count == 0.05
    assert alice.identity_registered == 1.0
    assert alice.avg_loan_size == 0.0
    assert bob.repayment_rate == 0.0
    assert bob.avg_loan_size == 0.01


def test_loan_status_transitions_are_one_way(now):
    """Test a resolved loan cannot change status again"""
    loan = create_loan(ALICE, 10, 0.12, 700, disbursed_at=now, term_days=30)
    loan.mark_repaid(now)

    with pytest.raises(InvalidLoanTransitionError):
        loan.mark_defaulted(now)
    with pytest.raises(InvalidLoanTransitionError):
        loan.mark_repaid(now)
    assert loan.status == LoanStatus.REPAID


def test_loan_summary(now):
    """Test summary counts and active balance"""
    ledger = LoanLedger()
    first = create_loan(ALICE, 100, 0.1, 700, disbursed_at=now, term_days=30)
    second = create_loan(BOB, 50, 0.1, 700, disbursed_at=now, term_days=30)
    add_loan(ledger, first)
    add_loan(ledger, second)
    first.repaid_amount = 30

    summary = get_loan_summary(ledger)

    assert summary.total == 2
    assert summary.active == 2
    assert summary.total_disbursed == 150
    assert summary.active_balance == 120


def test_ledger_document_round_trip(model, ledger, now):
    """Test the persisted document restores loans, totals and the id index"""
    loan = apply_for_loan(model, ledger, ALICE, 100, identity_registered=False, now=now).loan
    repay_loan(model, ledger, ALICE, 500, identity_registered=False, now=now)

    restored = LoanLedger.from_dict(ledger.to_dict())

    assert restored == ledger
    assert restored.get(loan.id).status == LoanStatus.REPAID
    assert restored.get(loan.id).repaid_at == now


def test_credit_report(model, ledger):
    """Test score report for a new borrower"""
    report = credit_report(model, ledger, ALICE, identity_registered=False)

    assert report.score == 750
    assert report.max_eligible == 409
    assert report.model_version == 0
    assert report.features.repayment_rate == 0.5

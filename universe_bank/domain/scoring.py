"""Credit engine - feature extraction, scoring, approval policy and online training"""

import math
from dataclasses import replace
from typing import Sequence

from universe_bank.domain.models import (
    FEATURE_NAMES,
    CreditFeatures,
    CreditModelState,
    CreditWeights,
    LoanDecision,
    TrainingOutcome,
)

SCORE_MIN = 300
SCORE_RANGE = 550  # SCORE_MIN + SCORE_RANGE = 850


def round_half_up(value: float, ndigits: int = 0):
    """
    Round with ties going up, unlike the builtin round which goes to even.

    Returns an int when ndigits is 0. A bucket of 2.5 agents holds 3.
    """
    if ndigits == 0:
        return math.floor(value + 0.5)
    factor = 10**ndigits
    return math.floor(value * factor + 0.5) / factor


def extract_features(
    transaction_count: float,
    repayment_history: Sequence[int],
    deposits: float,
    identity_registered: bool,
    account_age: float,
    total_borrowed: float,
    loan_count: int,
) -> CreditFeatures:
    """
    Normalize raw borrower signals into [0, 1] features.

    Baselines:
    - 100 transactions saturates activity
    - $10,000 of deposits saturates deposit engagement
    - 20 periods saturates account age
    - $5,000 average loan saturates loan size

    repayment_history holds resolved loans only (1 = repaid, 0 = defaulted).
    A borrower with nothing resolved gets a neutral 0.5 so new identities
    can still be scored.
    """
    total = len(repayment_history)
    repaid = sum(1 for outcome in repayment_history if outcome == 1)

    return CreditFeatures(
        transaction_count=min(transaction_count / 100, 1.0),
        repayment_rate=repaid / total if total > 0 else 0.5,
        deposits=min(deposits / 10_000, 1.0),
        identity_registered=1.0 if identity_registered else 0.0,
        account_age=min(account_age / 20, 1.0),
        avg_loan_size=min((total_borrowed / loan_count) / 5_000, 1.0) if loan_count > 0 else 0.0,
    )


def sigmoid(x: float) -> float:
    # Clamp keeps math.exp from overflowing
    x = max(-500.0, min(500.0, x))
    return 1 / (1 + math.exp(-x))


def dot_product(weights: CreditWeights, features: CreditFeatures) -> float:
    return sum(getattr(weights, name) * getattr(features, name) for name in FEATURE_NAMES)


def calculate_credit_score(features: CreditFeatures, model: CreditModelState) -> int:
    """Map features to an integer credit score in [300, 850]"""
    probability = sigmoid(dot_product(model.weights, features) + model.bias)
    return round_half_up(SCORE_MIN + probability * SCORE_RANGE)


def score_probability(score: int) -> float:
    return (score - SCORE_MIN) / SCORE_RANGE


def evaluate_loan_application(score: int, requested_amount: float, model: CreditModelState) -> LoanDecision:
    """
    Approve or deny a request for a given score.

    Policy:
    - p = (score - 300) / 550 below model.threshold: deny outright
    - credit limit = round_half_up(p * max_loan_multiplier)
    - rate = base_interest_rate + (1 - p) * risk_premium_factor, so riskier
      approved borrowers pay more
    - request above the limit: deny, but still report limit and rate
    """
    probability = score_probability(score)

    if probability < model.threshold:
        minimum_score = round_half_up(SCORE_MIN + model.threshold * SCORE_RANGE)
        return LoanDecision(
            approved=False,
            score=score,
            max_amount=0,
            interest_rate=0.0,
            reason=f"Credit score {score} below minimum threshold (need {minimum_score}+)",
        )

    max_amount = round_half_up(probability * model.max_loan_multiplier)
    interest_rate = round_half_up(model.base_interest_rate + (1 - probability) * model.risk_premium_factor, 4)

    if requested_amount > max_amount:
        return LoanDecision(
            approved=False,
            score=score,
            max_amount=max_amount,
            interest_rate=interest_rate,
            reason=f"Requested ${requested_amount:g} exceeds credit limit of ${max_amount}",
        )

    return LoanDecision(
        approved=True,
        score=score,
        max_amount=max_amount,
        interest_rate=interest_rate,
        reason="Approved",
    )


def update_model(model: CreditModelState, outcomes: Sequence[TrainingOutcome]) -> CreditModelState:
    """
    One pass of online SGD over loan outcomes (logistic loss).

    Outcomes are applied in order and each one sees the weights left by the
    previous one, so the result depends on ordering. Uses the model's own
    learning rate. An empty batch returns the model unchanged (same version).
    """
    if not outcomes:
        return model

    weights = replace(model.weights)
    bias = model.bias
    lr = model.learning_rate

    for outcome in outcomes:
        predicted = sigmoid(dot_product(weights, outcome.features) + bias)
        target = 1.0 if outcome.repaid else 0.0
        error = predicted - target

        for name in FEATURE_NAMES:
            setattr(weights, name, getattr(weights, name) - lr * error * getattr(outcome.features, name))
        bias -= lr * error

    return replace(
        model,
        version=model.version + 1,
        weights=weights,
        bias=bias,
        training_samples=model.training_samples + len(outcomes),
    )

"""Prometheus metrics for approval rates, repayments, model drift and simulation runs"""

from prometheus_client import Counter, Histogram, Gauge

# Decision metrics
decision_counter = Counter(
    "universe_bank_decision_total",
    "Total loan decisions made",
    ["outcome"],  # approved | declined
)

disbursed_bucket_counter = Counter(
    "universe_bank_disbursed_bucket",
    "Disbursed loans by amount bucket",
    ["bucket"],  # $0-$50, $50-$150, $150+
)

# Repayment metrics
repayment_counter = Counter(
    "universe_bank_repayment_total",
    "Repayments processed",
    ["outcome"],  # partial | full
)

no_active_loan_counter = Counter(
    "universe_bank_no_active_loan_total",
    "Repayments rejected because the borrower had no active loan",
)

# Model state
model_version_gauge = Gauge(
    "universe_bank_model_version",
    "Version of the live credit model",
)

# Simulation
simulation_epochs_counter = Counter(
    "universe_bank_simulation_epochs_total",
    "Simulation epochs processed",
)

simulation_rolling_default_rate_gauge = Gauge(
    "universe_bank_simulation_rolling_default_rate",
    "Rolling default rate of the most recent simulation epoch",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_decision(approved: bool, amount: float) -> None:
    """Record decision metrics for monitoring approval rates and loan sizes"""
    outcome = "approved" if approved else "declined"
    decision_counter.labels(outcome=outcome).inc()

    if not approved:
        return

    if amount <= 50:
        bucket = "$0-$50"
    elif amount <= 150:
        bucket = "$50-$150"
    else:
        bucket = "$150+"

    disbursed_bucket_counter.labels(bucket=bucket).inc()


def record_repayment(fully_repaid: bool, model_version: int) -> None:
    repayment_counter.labels(outcome="full" if fully_repaid else "partial").inc()
    model_version_gauge.set(model_version)


def record_epoch(rolling_default_rate: float) -> None:
    simulation_epochs_counter.inc()
    simulation_rolling_default_rate_gauge.set(rolling_default_rate)

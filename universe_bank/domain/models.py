"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from universe_bank.domain.exceptions import InvalidLoanTransitionError

# Order matters: weights, features and their dot product all follow it
FEATURE_NAMES: Tuple[str, ...] = (
    "transaction_count",
    "repayment_rate",
    "deposits",
    "identity_registered",
    "account_age",
    "avg_loan_size",
)


@dataclass
class CreditWeights:
    """One learned coefficient per credit feature"""

    transaction_count: float = 0.0
    repayment_rate: float = 0.0
    deposits: float = 0.0
    identity_registered: float = 0.0
    account_age: float = 0.0
    avg_loan_size: float = 0.0


@dataclass
class CreditFeatures:
    """Normalized borrower signals, each in [0, 1]"""

    transaction_count: float
    repayment_rate: float
    deposits: float
    identity_registered: float
    account_age: float
    avg_loan_size: float


@dataclass
class CreditModelState:
    """Versioned parameters of the linear credit model"""

    version: int = 0
    weights: CreditWeights = field(default_factory=CreditWeights)
    bias: float = 1.5
    threshold: float = 0.25
    max_loan_multiplier: float = 500
    base_interest_rate: float = 0.10
    risk_premium_factor: float = 0.08
    learning_rate: float = 0.12
    training_samples: int = 0

    @classmethod
    def default(cls) -> "CreditModelState":
        """Untrained model used on first run"""
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CreditModelState":
        values = dict(data)
        values["weights"] = CreditWeights(**values.get("weights", {}))
        return cls(**values)


@dataclass
class TrainingOutcome:
    """Features seen at resolution time paired with the observed result"""

    features: CreditFeatures
    repaid: bool


@dataclass
class LoanDecision:
    """Output of the approval policy"""

    approved: bool
    score: int
    max_amount: int
    interest_rate: float
    reason: str


class LoanStatus(str, Enum):
    ACTIVE = "active"
    REPAID = "repaid"
    DEFAULTED = "defaulted"


def _dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class Loan:
    """Loan record kept in the ledger"""

    id: str
    borrower: str
    amount: float
    interest_rate: float
    credit_score_at_origination: int
    disbursed_at: datetime
    due_at: datetime
    status: LoanStatus = LoanStatus.ACTIVE
    repaid_amount: float = 0.0
    repaid_at: Optional[datetime] = None
    defaulted_at: Optional[datetime] = None

    @property
    def total_owed(self) -> float:
        return self.amount * (1 + self.interest_rate)

    @property
    def outstanding(self) -> float:
        return self.total_owed - self.repaid_amount

    @property
    def is_active(self) -> bool:
        return self.status == LoanStatus.ACTIVE

    def mark_repaid(self, when: datetime) -> None:
        if not self.is_active:
            raise InvalidLoanTransitionError(f"Loan {self.id} is {self.status.value}, cannot mark repaid")
        self.status = LoanStatus.REPAID
        self.repaid_at = when

    def mark_defaulted(self, when: datetime) -> None:
        if not self.is_active:
            raise InvalidLoanTransitionError(f"Loan {self.id} is {self.status.value}, cannot mark defaulted")
        self.status = LoanStatus.DEFAULTED
        self.defaulted_at = when

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "borrower": self.borrower,
            "amount": self.amount,
            "interest_rate": self.interest_rate,
            "credit_score_at_origination": self.credit_score_at_origination,
            "status": self.status.value,
            "disbursed_at": self.disbursed_at.isoformat(),
            "due_at": self.due_at.isoformat(),
            "repaid_amount": self.repaid_amount,
            "repaid_at": self.repaid_at.isoformat() if self.repaid_at else None,
            "defaulted_at": self.defaulted_at.isoformat() if self.defaulted_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Loan":
        return cls(
            id=data["id"],
            borrower=data["borrower"],
            amount=data["amount"],
            interest_rate=data["interest_rate"],
            credit_score_at_origination=data["credit_score_at_origination"],
            status=LoanStatus(data["status"]),
            disbursed_at=datetime.fromisoformat(data["disbursed_at"]),
            due_at=datetime.fromisoformat(data["due_at"]),
            repaid_amount=data.get("repaid_amount", 0.0),
            repaid_at=_dt(data.get("repaid_at")),
            defaulted_at=_dt(data.get("defaulted_at")),
        )


@dataclass
class LoanLedger:
    """
    Append-only loan book with running totals.

    Insertion order is disbursal order, which is also repayment priority.
    """

    loans: List[Loan] = field(default_factory=list)
    total_disbursed: float = 0.0
    total_repaid: float = 0.0
    total_defaulted: float = 0.0
    _index: Dict[str, Loan] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._index = {loan.id: loan for loan in self.loans}

    def append(self, loan: Loan) -> None:
        self.loans.append(loan)
        self._index[loan.id] = loan

    def get(self, loan_id: str) -> Optional[Loan]:
        return self._index.get(loan_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "loans": [loan.to_dict() for loan in self.loans],
            "total_disbursed": self.total_disbursed,
            "total_repaid": self.total_repaid,
            "total_defaulted": self.total_defaulted,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoanLedger":
        return cls(
            loans=[Loan.from_dict(item) for item in data.get("loans", [])],
            total_disbursed=data.get("total_disbursed", 0.0),
            total_repaid=data.get("total_repaid", 0.0),
            total_defaulted=data.get("total_defaulted", 0.0),
        )


@dataclass
class LoanSummary:
    """Aggregate view over the ledger"""

    total: int
    active: int
    repaid: int
    defaulted: int
    total_disbursed: float
    total_repaid: float
    total_defaulted: float
    active_balance: float


@dataclass
class LoanApplicationResult:
    """Decision returned to the caller, with the loan when one was created"""

    approved: bool
    score: int
    max_amount: int
    interest_rate: float
    reason: str
    loan: Optional[Loan] = None


@dataclass
class RepaymentResult:
    """Outcome of applying a payment to the borrower's oldest active loan"""

    loan: Loan
    amount_applied: float
    remaining_balance: float
    fully_repaid: bool


@dataclass
class CreditReport:
    """Score breakdown for a single borrower"""

    borrower: str
    score: int
    features: CreditFeatures
    model_version: int
    max_eligible: int

"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import Dict, List, Optional

from universe_bank.config import settings


class LoanRequest(BaseModel):
    """Request body for POST /v1/loans/apply and /v1/loans/repay"""

    borrower: str = Field(..., min_length=1, description="Borrower address")
    amount: float = Field(..., gt=0, allow_inf_nan=False, description="Amount in USDC")


class LoanSchema(BaseModel):
    """Loan record as stored in the ledger"""

    id: str
    borrower: str
    amount: float
    interest_rate: float
    credit_score_at_origination: int
    status: str
    disbursed_at: datetime
    due_at: datetime
    repaid_amount: float
    repaid_at: Optional[datetime] = None
    defaulted_at: Optional[datetime] = None


class LoanApplicationResponse(BaseModel):
    """Response for POST /v1/loans/apply"""

    approved: bool
    score: int
    max_amount: int
    interest_rate: float
    reason: str
    total_repayment: Optional[float] = None
    loan: Optional[LoanSchema] = None


class RepaymentResponse(BaseModel):
    """Response for POST /v1/loans/repay"""

    model_config = ConfigDict(protected_namespaces=())

    loan: LoanSchema
    amount_applied: float
    remaining_balance: float
    fully_repaid: bool
    model_version: int


class ActiveLoanItem(BaseModel):
    """Active loan with what is left to pay"""

    loan: LoanSchema
    total_owed: float
    remaining: float


class ActiveLoansResponse(BaseModel):
    """Response for GET /v1/loans/active"""

    borrower: str
    loans: List[ActiveLoanItem]


class LoanSummarySchema(BaseModel):
    total: int
    active: int
    repaid: int
    defaulted: int
    total_disbursed: float
    total_repaid: float
    total_defaulted: float
    active_balance: float


class LoanListResponse(BaseModel):
    """Response for GET /v1/loans"""

    loans: List[LoanSchema]
    summary: LoanSummarySchema


class CreditFeaturesSchema(BaseModel):
    transaction_count: float
    repayment_rate: float
    deposits: float
    identity_registered: float
    account_age: float
    avg_loan_size: float


class CreditScoreResponse(BaseModel):
    """Response for GET /v1/credit/score"""

    model_config = ConfigDict(protected_namespaces=())

    borrower: str
    score: int
    features: CreditFeaturesSchema
    model_version: int
    max_eligible: int


class CreditModelResponse(BaseModel):
    """Response for GET /v1/credit/model"""

    version: int
    weights: Dict[str, float]
    bias: float
    threshold: float
    max_loan_multiplier: float
    base_interest_rate: float
    risk_premium_factor: float
    learning_rate: float
    training_samples: int


class SimulationRequest(BaseModel):
    """Request body for POST /v1/simulations"""

    agents: int = Field(settings.default_sim_agents, ge=1, le=10_000)
    epochs: int = Field(settings.default_sim_epochs, ge=1, le=1_000)
    seed: int = settings.default_sim_seed

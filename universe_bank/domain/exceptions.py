"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class InvalidLoanAmountError(DomainException):
    """Loan or repayment amount is non-numeric, non-finite or not positive"""

    pass


class NoActiveLoanError(DomainException):
    """Borrower has no active loan to apply a repayment to"""

    pass


class InvalidLoanTransitionError(DomainException):
    """Loan status change other than active -> repaid / active -> defaulted"""

    pass


class StateCorruptedError(DomainException):
    """Persisted model or ledger document cannot be decoded"""

    pass

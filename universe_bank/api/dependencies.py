"""Dependency injection for FastAPI endpoints"""

from universe_bank.config import settings


def get_identity_registered() -> bool:
    """Identity-registry flag for the configured borrower"""
    return settings.identity_registered

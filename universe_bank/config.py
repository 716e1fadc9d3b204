"""Configuration management using Pydantic Settings"""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="UNIVERSE_BANK_", extra="ignore"
    )

    # Persistence (model + ledger documents)
    database_url: str = "sqlite:///./universe_bank.db"

    # Service
    service_name: str = "universe-bank"
    log_level: str = "INFO"

    # Identity registry id for this borrower; set means "identity registered"
    agent_id: Optional[str] = None

    # Lending
    loan_term_days: int = 30
    repayment_epsilon: float = 0.01

    # Simulation
    default_sim_agents: int = 100
    default_sim_epochs: int = 24
    default_sim_seed: int = 42
    simulation_report_path: Optional[str] = None

    @property
    def identity_registered(self) -> bool:
        return bool(self.agent_id)


settings = Settings()

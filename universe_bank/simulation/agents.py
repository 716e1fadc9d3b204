"""Synthetic borrower population with hidden, archetype-specific behavior"""

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Tuple

from universe_bank.domain.scoring import round_half_up

Range = Tuple[float, float]


class Archetype(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    AVERAGE = "average"
    RISKY = "risky"
    BAD = "bad"


@dataclass(frozen=True)
class ArchetypeConfig:
    """Uniform sampling ranges for one archetype"""

    repay_prob_range: Range
    appetite_range: Range
    request_mult_range: Range
    balance_range: Range
    tx_count_range: Range
    identity_prob: float
    deposit_range: Range


ARCHETYPE_CONFIGS: Dict[Archetype, ArchetypeConfig] = {
    Archetype.EXCELLENT: ArchetypeConfig(
        repay_prob_range=(0.95, 1.0),
        appetite_range=(0.7, 0.9),
        request_mult_range=(0.3, 0.5),
        balance_range=(5000, 10000),
        tx_count_range=(80, 200),
        identity_prob=0.98,
        deposit_range=(2000, 8000),
    ),
    Archetype.GOOD: ArchetypeConfig(
        repay_prob_range=(0.82, 0.95),
        appetite_range=(0.6, 0.8),
        request_mult_range=(0.3, 0.6),
        balance_range=(2000, 6000),
        tx_count_range=(30, 100),
        identity_prob=0.85,
        deposit_range=(500, 3000),
    ),
    Archetype.AVERAGE: ArchetypeConfig(
        repay_prob_range=(0.55, 0.75),
        appetite_range=(0.5, 0.7),
        request_mult_range=(0.4, 0.7),
        balance_range=(500, 3000),
        tx_count_range=(5, 40),
        identity_prob=0.45,
        deposit_range=(0, 500),
    ),
    Archetype.RISKY: ArchetypeConfig(
        repay_prob_range=(0.20, 0.45),
        appetite_range=(0.75, 0.95),
        request_mult_range=(0.7, 1.0),
        balance_range=(50, 800),
        tx_count_range=(0, 10),
        identity_prob=0.10,
        deposit_range=(0, 50),
    ),
    Archetype.BAD: ArchetypeConfig(
        repay_prob_range=(0.02, 0.18),
        appetite_range=(0.9, 1.0),
        request_mult_range=(0.9, 1.5),
        balance_range=(0, 100),
        tx_count_range=(0, 3),
        identity_prob=0.02,
        deposit_range=(0, 0),
    ),
}

# 15% excellent, 25% good, 30% average, 20% risky, 10% bad
ARCHETYPE_DISTRIBUTION: List[Tuple[Archetype, float]] = [
    (Archetype.EXCELLENT, 0.15),
    (Archetype.GOOD, 0.25),
    (Archetype.AVERAGE, 0.30),
    (Archetype.RISKY, 0.20),
    (Archetype.BAD, 0.10),
]


@dataclass
class SimLoan:
    amount: float
    interest_rate: float
    disbursed_at: int  # epoch
    status: str = "active"


@dataclass
class SimAgent:
    """
    Simulated borrower.

    The observable fields mirror what feature extraction sees for a real
    borrower. true_repay_probability, loan_appetite and request_multiplier
    are ground truth the credit model never reads.
    """

    id: int
    name: str
    archetype: Archetype
    # Observable
    balance: float
    transaction_count: int
    deposits: float
    identity_registered: bool
    account_age: int = 0
    repayment_history: List[int] = field(default_factory=list)
    # Hidden
    true_repay_probability: float = 0.0
    loan_appetite: float = 0.0
    request_multiplier: float = 0.0
    # State
    active_loans: List[SimLoan] = field(default_factory=list)
    total_borrowed: float = 0.0
    total_repaid_amount: float = 0.0
    productivity: float = 0.0
    loan_count: int = 0


def rand_range(rng: random.Random, bounds: Range) -> float:
    low, high = bounds
    return low + rng.random() * (high - low)


def create_agent(agent_id: int, archetype: Archetype, rng: random.Random) -> SimAgent:
    # Draw order is fixed; changing it changes every seeded population
    cfg = ARCHETYPE_CONFIGS[archetype]
    balance = round_half_up(rand_range(rng, cfg.balance_range))
    transaction_count = round_half_up(rand_range(rng, cfg.tx_count_range))
    deposits = round_half_up(rand_range(rng, cfg.deposit_range))
    identity_registered = rng.random() < cfg.identity_prob
    true_repay_probability = rand_range(rng, cfg.repay_prob_range)
    loan_appetite = rand_range(rng, cfg.appetite_range)
    request_multiplier = rand_range(rng, cfg.request_mult_range)
    productivity = round_half_up(rand_range(rng, cfg.balance_range) * 0.5)

    return SimAgent(
        id=agent_id,
        name=f"Agent-{agent_id:03d}",
        archetype=archetype,
        balance=balance,
        transaction_count=transaction_count,
        deposits=deposits,
        identity_registered=identity_registered,
        true_repay_probability=true_repay_probability,
        loan_appetite=loan_appetite,
        request_multiplier=request_multiplier,
        productivity=productivity,
    )


def generate_agents(count: int, rng: random.Random) -> List[SimAgent]:
    """
    Build `count` agents following ARCHETYPE_DISTRIBUTION.

    Each bucket gets count * share agents, rounded half up. Rounding drift is fixed by
    padding with average agents or dropping the last ones.
    """
    agents: List[SimAgent] = []

    for archetype, share in ARCHETYPE_DISTRIBUTION:
        for _ in range(round_half_up(count * share)):
            agents.append(create_agent(len(agents), archetype, rng))

    while len(agents) < count:
        agents.append(create_agent(len(agents), Archetype.AVERAGE, rng))

    del agents[count:]
    return agents


def get_archetype_counts(agents: List[SimAgent]) -> Dict[str, int]:
    counts = {archetype.value: 0 for archetype in Archetype}
    for agent in agents:
        counts[agent.archetype.value] += 1
    return counts

"""Multi-agent lending simulation driving the self-improving credit model"""

import json
import logging
import math
import random
from collections import deque
from dataclasses import asdict, dataclass, fields
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Deque, Dict, Iterator, List, Mapping, Optional, Tuple

from universe_bank.domain.models import CreditFeatures, CreditModelState, TrainingOutcome
from universe_bank.domain.scoring import (
    calculate_credit_score,
    evaluate_loan_application,
    extract_features,
    round_half_up,
    score_probability,
    update_model,
)
from universe_bank.simulation.agents import (
    Archetype,
    SimAgent,
    SimLoan,
    generate_agents,
    get_archetype_counts,
)

logger = logging.getLogger(__name__)

MAX_ACTIVE_LOANS = 3
MIN_REQUEST = 10
MAX_REQUEST = 250
ROLLING_WINDOW = 5


class SimulationPhase(str, Enum):
    IDLE = "idle"
    APPLYING = "applying"
    RESOLVING = "resolving"
    TRAINING = "training"
    METRICS = "metrics"
    DONE = "done"


@dataclass(frozen=True)
class EpochMetrics:
    epoch: int
    applications: int
    approvals: int
    rejections: int
    approval_rate: float
    repayments: int
    defaults: int
    default_rate: float
    rolling_default_rate: float
    cumulative_default_rate: float
    total_disbursed: float
    total_repaid: float  # interest income only
    total_default_loss: float
    net_profit: float
    cumulative_profit: float
    model_version: int
    avg_credit_score: int
    agent_productivity_avg: float
    archetype_default_rates: Mapping[str, float]  # read-only view

    def to_dict(self) -> Dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["archetype_default_rates"] = dict(self.archetype_default_rates)
        return data


@dataclass(frozen=True)
class SimulationSummary:
    initial_default_rate: float
    final_default_rate: float
    improvement_percent: float
    total_profit: float
    total_loan_volume: float
    avg_productivity_growth: float


@dataclass(frozen=True)
class SimulationReport:
    seed: int
    agent_count: int
    epoch_count: int
    epochs: Tuple[EpochMetrics, ...]
    final_model: CreditModelState
    archetype_counts: Dict[str, int]
    summary: SimulationSummary

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seed": self.seed,
            "agent_count": self.agent_count,
            "epoch_count": self.epoch_count,
            "epochs": [metrics.to_dict() for metrics in self.epochs],
            "final_model": self.final_model.to_dict(),
            "archetype_counts": dict(self.archetype_counts),
            "summary": asdict(self.summary),
        }


ProgressCallback = Callable[[EpochMetrics, float], None]


def agent_features(agent: SimAgent) -> CreditFeatures:
    return extract_features(
        transaction_count=agent.transaction_count,
        repayment_history=agent.repayment_history,
        deposits=agent.deposits,
        identity_registered=agent.identity_registered,
        account_age=agent.account_age,
        total_borrowed=agent.total_borrowed,
        loan_count=agent.loan_count,
    )


def adapt_threshold(threshold: float, rolling_default_rate: float, epoch: int) -> float:
    """
    Fast-acting threshold override on top of the gradient updates.

    - rolling default rate > 25%: +0.025, capped at 0.72
    - rolling default rate > 15%: +0.01, capped at 0.65
    - rolling default rate < 8% after epoch 5: -0.005, floored at 0.38
    """
    if rolling_default_rate > 0.25:
        return min(threshold + 0.025, 0.72)
    if rolling_default_rate > 0.15:
        return min(threshold + 0.01, 0.65)
    if rolling_default_rate < 0.08 and epoch > 5:
        return max(threshold - 0.005, 0.38)
    return threshold


def compute_archetype_default_rates(agents: List[SimAgent]) -> Dict[str, float]:
    """Defaults / resolved loans per archetype over each agent's full history"""
    tallies = {archetype.value: [0, 0] for archetype in Archetype}
    for agent in agents:
        if not agent.repayment_history:
            continue
        tally = tallies[agent.archetype.value]
        tally[0] += agent.repayment_history.count(0)
        tally[1] += len(agent.repayment_history)

    return {name: defaults / total if total > 0 else 0.0 for name, (defaults, total) in tallies.items()}


def _mean_productivity(agents: List[SimAgent]) -> float:
    return sum(agent.productivity for agent in agents) / len(agents) if agents else 0.0


class Simulation:
    """
    Epoch-stepped lending simulation.

    A single random.Random seeded once drives population generation and
    every stochastic draw afterwards, in a fixed order. Two instances built
    with the same arguments produce identical metrics.
    """

    def __init__(self, agents: int, epochs: int, seed: int, model: Optional[CreditModelState] = None):
        self.agent_count = agents
        self.epoch_count = epochs
        self.seed = seed
        self.rng = random.Random(seed)
        self.agents = generate_agents(agents, self.rng)
        # Work on a copy: the adaptive threshold is written in place
        self.model = CreditModelState.from_dict(model.to_dict()) if model else CreditModelState.default()
        self.phase = SimulationPhase.IDLE
        self.metrics: List[EpochMetrics] = []

        self._initial_productivity = _mean_productivity(self.agents)
        self._window: Deque[Tuple[int, int]] = deque(maxlen=ROLLING_WINDOW)
        self._cumulative_defaults = 0
        self._cumulative_resolved = 0
        self._cumulative_profit = 0.0

    def iter_epochs(self) -> Iterator[EpochMetrics]:
        """
        Run epochs one at a time, yielding each epoch's metrics.

        Stopping iteration cancels the run at an epoch boundary.
        """
        for epoch in range(len(self.metrics) + 1, self.epoch_count + 1):
            yield self.step(epoch)
        self.phase = SimulationPhase.DONE

    def run(self, on_epoch_complete: Optional[ProgressCallback] = None) -> SimulationReport:
        for metrics in self.iter_epochs():
            if on_epoch_complete:
                on_epoch_complete(metrics, metrics.epoch / self.epoch_count)
        return self.report()

    def step(self, epoch: int) -> EpochMetrics:
        for agent in self.agents:
            agent.account_age = epoch

        self.phase = SimulationPhase.APPLYING
        applications, approvals, disbursed = self._application_phase(epoch)

        self.phase = SimulationPhase.RESOLVING
        outcomes, repayments, defaults, interest_income, default_loss = self._resolution_phase(epoch)

        self.phase = SimulationPhase.TRAINING
        if outcomes:
            self.model = update_model(self.model, outcomes)

        resolved = repayments + defaults
        self._window.append((defaults, resolved))
        self._cumulative_defaults += defaults
        self._cumulative_resolved += resolved

        window_defaults = sum(d for d, _ in self._window)
        window_resolved = sum(r for _, r in self._window)
        rolling_default_rate = window_defaults / window_resolved if window_resolved > 0 else 0.0

        threshold = adapt_threshold(self.model.threshold, rolling_default_rate, epoch)
        if threshold != self.model.threshold:
            logger.debug("Threshold %.3f -> %.3f at epoch %d", self.model.threshold, threshold, epoch)
            self.model.threshold = threshold

        self._drift_phase()

        self.phase = SimulationPhase.METRICS
        net_profit = interest_income - default_loss
        self._cumulative_profit += net_profit
        total_score = sum(calculate_credit_score(agent_features(agent), self.model) for agent in self.agents)

        metrics = EpochMetrics(
            epoch=epoch,
            applications=applications,
            approvals=approvals,
            rejections=applications - approvals,
            approval_rate=approvals / applications if applications > 0 else 0.0,
            repayments=repayments,
            defaults=defaults,
            default_rate=defaults / resolved if resolved > 0 else 0.0,
            rolling_default_rate=rolling_default_rate,
            cumulative_default_rate=(
                self._cumulative_defaults / self._cumulative_resolved if self._cumulative_resolved > 0 else 0.0
            ),
            total_disbursed=disbursed,
            total_repaid=interest_income,
            total_default_loss=default_loss,
            net_profit=net_profit,
            cumulative_profit=self._cumulative_profit,
            model_version=self.model.version,
            avg_credit_score=round_half_up(total_score / len(self.agents)) if self.agents else 0,
            agent_productivity_avg=_mean_productivity(self.agents),
            archetype_default_rates=MappingProxyType(compute_archetype_default_rates(self.agents)),
        )
        self.metrics.append(metrics)
        self.phase = SimulationPhase.IDLE

        logger.info(
            "Epoch completed",
            extra={
                "step": "epoch_complete",
                "epoch": epoch,
                "applications": applications,
                "approvals": approvals,
                "defaults": defaults,
                "rolling_default_rate": round(rolling_default_rate, 4),
                "model_version": self.model.version,
                "threshold": self.model.threshold,
            },
        )
        return metrics

    def _application_phase(self, epoch: int) -> Tuple[int, int, float]:
        applications = 0
        approvals = 0
        disbursed = 0.0

        for agent in self.agents:
            # Appetite draw happens even for agents at the loan cap
            if self.rng.random() > agent.loan_appetite:
                continue
            if len(agent.active_loans) >= MAX_ACTIVE_LOANS:
                continue

            applications += 1
            score = calculate_credit_score(agent_features(agent), self.model)
            max_possible = score_probability(score) * self.model.max_loan_multiplier
            request = max(MIN_REQUEST, min(MAX_REQUEST, round_half_up(agent.request_multiplier * max_possible * 0.4)))

            decision = evaluate_loan_application(score, request, self.model)
            if not decision.approved:
                continue

            approvals += 1
            agent.active_loans.append(SimLoan(amount=request, interest_rate=decision.interest_rate, disbursed_at=epoch))
            agent.balance += request
            agent.total_borrowed += request
            agent.loan_count += 1
            disbursed += request

        return applications, approvals, disbursed

    def _resolution_phase(self, epoch: int) -> Tuple[List[TrainingOutcome], int, int, float, float]:
        outcomes: List[TrainingOutcome] = []
        repayments = 0
        defaults = 0
        interest_income = 0.0
        default_loss = 0.0

        for agent in self.agents:
            still_active: List[SimLoan] = []

            for loan in agent.active_loans:
                # Loans are due one epoch after disbursal
                if epoch - loan.disbursed_at < 1:
                    still_active.append(loan)
                    continue

                features = agent_features(agent)
                repaid = self.rng.random() < agent.true_repay_probability

                if repaid:
                    interest = loan.amount * loan.interest_rate
                    owed = loan.amount + interest
                    loan.status = "repaid"
                    agent.repayment_history.append(1)
                    agent.transaction_count += 2
                    agent.total_repaid_amount += owed
                    agent.productivity += loan.amount * 0.2
                    agent.balance -= owed
                    repayments += 1
                    interest_income += interest
                else:
                    loan.status = "defaulted"
                    agent.repayment_history.append(0)
                    defaults += 1
                    default_loss += loan.amount

                outcomes.append(TrainingOutcome(features=features, repaid=repaid))

            agent.active_loans = still_active

        return outcomes, repayments, defaults, interest_income, default_loss

    def _drift_phase(self) -> None:
        # Keeps features moving for agents that never borrow
        for agent in self.agents:
            agent.transaction_count += math.floor(self.rng.random() * 3)
            if self.rng.random() < 0.15 and agent.balance > 100:
                deposit = round_half_up(agent.balance * 0.15)
                agent.deposits += deposit
                agent.balance -= deposit

    def report(self) -> SimulationReport:
        with_data = [m for m in self.metrics if m.repayments + m.defaults > 0]
        initial_rate = with_data[0].rolling_default_rate if with_data else 0.0
        final_rate = with_data[-1].rolling_default_rate if with_data else 0.0
        final_productivity = _mean_productivity(self.agents)

        summary = SimulationSummary(
            initial_default_rate=initial_rate,
            final_default_rate=final_rate,
            improvement_percent=(initial_rate - final_rate) / initial_rate * 100 if initial_rate > 0 else 0.0,
            total_profit=self._cumulative_profit,
            total_loan_volume=sum(m.total_disbursed for m in self.metrics),
            avg_productivity_growth=(
                (final_productivity - self._initial_productivity) / self._initial_productivity * 100
                if self._initial_productivity > 0
                else 0.0
            ),
        )
        return SimulationReport(
            seed=self.seed,
            agent_count=self.agent_count,
            epoch_count=self.epoch_count,
            epochs=tuple(self.metrics),
            # Snapshot: resumed epochs keep writing the live threshold
            final_model=CreditModelState.from_dict(self.model.to_dict()),
            archetype_counts=get_archetype_counts(self.agents),
            summary=summary,
        )


def run_simulation(
    agents: int,
    epochs: int,
    seed: int,
    on_epoch_complete: Optional[ProgressCallback] = None,
) -> SimulationReport:
    """Run a full simulation from an untrained model"""
    simulation = Simulation(agents=agents, epochs=epochs, seed=seed)
    report = simulation.run(on_epoch_complete)
    logger.info(
        "Simulation completed",
        extra={
            "step": "simulation_complete",
            "seed": seed,
            "agents": agents,
            "epochs": epochs,
            "initial_default_rate": report.summary.initial_default_rate,
            "final_default_rate": report.summary.final_default_rate,
            "model_version": report.final_model.version,
        },
    )
    return report


def write_report(report: SimulationReport, path: str) -> Path:
    """Export the full report as a JSON document"""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(json.dumps(report.to_dict(), indent=2))
    return target

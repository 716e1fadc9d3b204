"""POST /v1/simulations - run the multi-agent credit simulation"""

import logging
from fastapi import APIRouter

from universe_bank.api.v1.schemas import SimulationRequest
from universe_bank.config import settings
from universe_bank.infrastructure.observability.metrics import record_epoch
from universe_bank.simulation.engine import run_simulation, write_report

router = APIRouter()


@router.post("/simulations")
def create_simulation(request_body: SimulationRequest):
    """
    Run a seeded simulation from an untrained model.

    The live model and ledger are not touched. Returns the full report
    (per-epoch metrics, final model, archetype counts, summary) and writes it
    to settings.simulation_report_path when configured.
    """
    report = run_simulation(
        agents=request_body.agents,
        epochs=request_body.epochs,
        seed=request_body.seed,
        on_epoch_complete=lambda metrics, progress: record_epoch(metrics.rolling_default_rate),
    )

    if settings.simulation_report_path:
        path = write_report(report, settings.simulation_report_path)
        logging.info("Simulation report saved", extra={"path": str(path)})

    return report.to_dict()

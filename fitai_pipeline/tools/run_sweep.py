# fitai_pipeline/tools/run_sweep.py
"""
run_sweep tool implementation.

Operator trigger for one sweep (the same sweep the server runs periodically).
"""

import logging

from fitai_pipeline.background.sweep import SweepScheduler
from fitai_pipeline.models.responses import SweepResponse

logger = logging.getLogger(__name__)


async def run_sweep(sweep: SweepScheduler) -> dict:
    """
    Run one sweep now.

    Returns:
        SweepResponse as dict
    """
    report = await sweep.sweep_once()
    logger.info(f"Manual sweep: {report.as_dict()}")
    return SweepResponse(**report.as_dict()).model_dump()

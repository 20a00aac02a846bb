"""
Rescue API Routes

Endpoints for engine status, cycles, manual assessment and rescue.
"""

from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from memory_rescue.errors import StoreUnavailable
from memory_rescue.models.memory_item import UrgencyTier
from memory_rescue.models.rescue import BatchSummary, RescueOutcome, WatchdogStats

router = APIRouter()


# Dependency to get the engine
async def get_engine():
    from memory_rescue.api.main import get_system
    return get_system()


@router.get("/status")
async def get_status(engine=Depends(get_engine)) -> Dict[str, Any]:
    """Watchdog stats, cycle state, pending counts and metrics."""
    return engine.get_status()


@router.get("/cycles")
async def list_cycles(engine=Depends(get_engine)) -> Dict[str, Any]:
    """Configured cycles with effective batch sizes and next-run times."""
    return engine.get_cycles()


@router.post("/cycles/{tier}/run", response_model=BatchSummary)
async def run_cycle(tier: UrgencyTier, engine=Depends(get_engine)):
    """Run one tier's batch now."""
    summary = await engine.run_cycle(tier)
    if summary.aborted:
        raise HTTPException(status_code=503, detail=summary.error or "Rescue batch aborted")
    return summary


@router.post("/assess", response_model=WatchdogStats)
async def assess(engine=Depends(get_engine)):
    """Run a watchdog pass now."""
    stats = await engine.assess()
    if stats.error:
        raise HTTPException(status_code=503, detail=stats.error)
    return stats


@router.get("/items/{item_id}/decay")
async def get_item_decay(item_id: UUID, engine=Depends(get_engine)) -> Dict[str, Any]:
    """Current decay state and prediction for one item."""
    try:
        report = await engine.decay_report(item_id)
    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    if report is None:
        raise HTTPException(status_code=404, detail="Memory item not found")
    return report


@router.post("/items/{item_id}/rescue", response_model=List[RescueOutcome])
async def rescue_item(item_id: UUID, engine=Depends(get_engine)):
    """Rescue one item immediately."""
    try:
        outcomes = await engine.rescue([item_id])
    except StoreUnavailable as e:
        raise HTTPException(status_code=503, detail=str(e))
    if not outcomes:
        raise HTTPException(status_code=404, detail="Memory item not found")
    return outcomes


@router.get("/metrics")
async def get_metrics(limit: Optional[int] = 50, engine=Depends(get_engine)) -> Dict[str, Any]:
    """Per-tier rescue metrics and recent batch summaries."""
    return {
        "summary": engine.metrics.get_summary(),
        "recent": engine.metrics.get_recent(limit=limit),
        "log_files": engine.metrics.get_log_files(),
    }

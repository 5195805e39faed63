"""
Scheduler Router
API endpoints for managing the exchange rate sync scheduler.
"""
from fastapi import APIRouter, Depends
from typing import Dict

from finance.dependencies import get_rate_sync
from finance.services.scheduler_service import RateSyncScheduler


router = APIRouter()


@router.post("/trigger", response_model=Dict)
async def trigger_sync_now(rate_sync: RateSyncScheduler = Depends(get_rate_sync)):
    """
    Manually run one exchange rate sync cycle immediately.

    This endpoint:
    1. Fetches the ECB 90-day feed (with retries)
    2. Backfills missing business days from the historical feed
    3. Upserts every rate and returns the cycle summary

    If a cycle is already running the request is reported as skipped.

    Returns:
        Summary of the sync cycle
    """
    return await rate_sync.trigger_now()


@router.get("/status", response_model=Dict)
async def get_scheduler_status(rate_sync: RateSyncScheduler = Depends(get_rate_sync)):
    """
    Get the current status of the scheduler, including next run and last sync result.

    Returns:
        Scheduler state, next scheduled run, and last sync result
    """
    next_run = rate_sync.next_run_time()

    return {
        "status": "running" if rate_sync.scheduler is not None else "not_running",
        "state": rate_sync.state.value,
        "cycle_in_progress": rate_sync.is_running,
        "next_run_time": next_run.isoformat() if next_run else None,
        "consecutive_failures": rate_sync.consecutive_failures,
        "last_sync": rate_sync.last_sync_result,
    }

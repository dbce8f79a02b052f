"""Budget API — the single process-wide spend policy.

Learn: PATCH merges — only the fields you send change. Setting a cap to 0
disables it. Warnings fire through record_event responses once spend
reaches alert_threshold_pct of a cap.
"""

from datetime import date, datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from runlens.db.engine import get_db
from runlens.schemas.session import BudgetRead, BudgetUpdate, DailySpendRead
from runlens.services.session_service import SessionService

router = APIRouter(prefix="/budget")


def _svc(db: AsyncSession = Depends(get_db)) -> SessionService:
    return SessionService(db)


@router.get("", response_model=BudgetRead)
async def get_budget(svc: SessionService = Depends(_svc)):
    return await svc.get_budget()


@router.patch("", response_model=BudgetRead)
async def set_budget(
    body: BudgetUpdate,
    svc: SessionService = Depends(_svc),
):
    """Update budget limits. Only provided fields are changed."""
    return await svc.set_budget(**body.model_dump(exclude_none=True))


@router.get("/daily", response_model=DailySpendRead)
async def daily_spend(
    day: Optional[date] = Query(None, description="UTC date, defaults to today"),
    svc: SessionService = Depends(_svc),
):
    """Estimated spend for sessions started on a given day."""
    return await svc.daily_spend(day or datetime.now(timezone.utc).date())

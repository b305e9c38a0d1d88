"""API endpoints for controller earnings reports."""
from typing import Optional
import logging

from fastapi import APIRouter, HTTPException, status, Query
from fastapi.responses import JSONResponse

from school_earnings.api.deps import DB, CurrentSchool
from school_earnings.schemas.earnings import ControllerEarningsReport, EarningsParams
from school_earnings.services.earnings import (
    EarningsCalculator,
    EarningsCalculationError,
    build_report,
)
from school_earnings.services.earnings.rules import InvalidYearMonthError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/{school_slug}/controller-earnings",
    response_model=ControllerEarningsReport,
)
async def get_controller_earnings(
    db: DB,
    school: CurrentSchool,
    month: Optional[str] = Query(None, description="YYYY-MM, defaults to the current month"),
    controller_id: Optional[str] = Query(None, alias="controllerId"),
    team_id: Optional[int] = Query(None, alias="teamId"),
):
    """Earnings of every controller of the school for one month, with summary and team rollups."""
    try:
        calculator = EarningsCalculator(db, month, school_id=school["id"])
    except InvalidYearMonthError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    params = EarningsParams(year_month=month, controller_id=controller_id, team_id=team_id)
    try:
        earnings = await calculator.calculate_controller_earnings(params)
    except EarningsCalculationError as e:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"message": "Error calculating earnings", "error": str(e)},
        )

    return build_report(earnings)

from fastapi import APIRouter

from school_earnings.api.v1.endpoints import (
    # Earnings reports
    controller_earnings,
    # Earnings policy
    earnings_config,
)

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(
    controller_earnings.router,
    prefix="/schools",
    tags=["Controller Earnings"]
)
api_router.include_router(
    earnings_config.router,
    prefix="/schools",
    tags=["Earnings Config"]
)

"""API endpoints for the versioned controller earnings configuration."""
from typing import Optional

from fastapi import APIRouter, Header, HTTPException, status

from school_earnings.api.deps import DB, CurrentSchool
from school_earnings.schemas.earnings import (
    EarningsConfigInput,
    EarningsConfigResponse,
    EarningsConfigHistoryResponse,
)
from school_earnings.services.earnings_config_service import (
    EarningsConfigService,
    EarningsConfigNotFoundError,
)

router = APIRouter()


@router.get(
    "/{school_slug}/controller-earnings-config",
    response_model=EarningsConfigHistoryResponse,
)
async def get_earnings_config(db: DB, school: CurrentSchool):
    """Current configuration and full history of the school."""
    service = EarningsConfigService(db)
    current = await service.get_current(school["id"])
    history = await service.list_history(school["id"])

    return EarningsConfigHistoryResponse(
        current=EarningsConfigResponse.model_validate(current) if current else None,
        history=[EarningsConfigResponse.model_validate(c) for c in history],
    )


@router.post(
    "/{school_slug}/controller-earnings-config",
    response_model=EarningsConfigResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_earnings_config(
    config_in: EarningsConfigInput,
    db: DB,
    school: CurrentSchool,
    x_admin_id: Optional[str] = Header(None),
):
    """Create a new active configuration; earlier versions are deactivated."""
    service = EarningsConfigService(db)
    config = await service.create_config(school["id"], config_in, admin_id=x_admin_id)
    return EarningsConfigResponse.model_validate(config)


@router.put(
    "/{school_slug}/controller-earnings-config/{config_id}",
    response_model=EarningsConfigResponse,
)
async def update_earnings_config(
    config_id: int,
    config_in: EarningsConfigInput,
    db: DB,
    school: CurrentSchool,
    x_admin_id: Optional[str] = Header(None),
):
    """Correct the rates of an existing configuration version."""
    service = EarningsConfigService(db)
    try:
        config = await service.update_config(school["id"], config_id, config_in, admin_id=x_admin_id)
    except EarningsConfigNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return EarningsConfigResponse.model_validate(config)

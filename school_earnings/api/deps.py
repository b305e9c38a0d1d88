from typing import Annotated
import logging

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_earnings.database import get_db
from school_earnings.core.tenant_context import get_school_by_slug, SchoolNotFoundError


logger = logging.getLogger(__name__)


DB = Annotated[AsyncSession, Depends(get_db)]


async def get_current_school(school_slug: str, db: DB) -> dict:
    """
    Dependency resolving the `{school_slug}` path parameter to a school.
    Raises 404 for unknown slugs.
    """
    try:
        return await get_school_by_slug(db, school_slug)
    except SchoolNotFoundError:
        logger.warning(f"School not found: {school_slug}")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="School not found"
        )


CurrentSchool = Annotated[dict, Depends(get_current_school)]

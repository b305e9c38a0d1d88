"""
Tenant (school) lookup for the multi-school deployment.

Every roster, ledger and configuration row carries a school id. Requests
address a school by slug; this module maps slugs to ids.

Usage:

    school = await get_school_by_slug(db, "al-noor")
    calculator = EarningsCalculator(db, "2026-03", school_id=school["id"])
"""

import logging
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_earnings.models.school import School

logger = logging.getLogger(__name__)

# Cache for school lookups by slug (reduces DB queries)
_school_cache: Dict[str, dict] = {}


class SchoolNotFoundError(Exception):
    """Raised when no school matches the requested slug."""
    pass


async def get_school_by_slug(db: AsyncSession, slug: str) -> dict:
    """
    Fetch school details by slug.

    Args:
        db: Session to query with
        slug: URL slug of the school

    Returns:
        School dictionary with id, slug, name

    Raises:
        SchoolNotFoundError: If the school doesn't exist
    """
    if slug in _school_cache:
        return _school_cache[slug]

    result = await db.execute(
        select(School.id, School.slug, School.name).where(School.slug == slug)
    )
    row = result.first()

    if not row:
        raise SchoolNotFoundError(f"School {slug!r} not found")

    school = {"id": row.id, "slug": row.slug, "name": row.name}

    # Cache it
    _school_cache[slug] = school
    return school


def clear_school_cache(slug: Optional[str] = None):
    """
    Clear school cache.

    Args:
        slug: Specific school to clear, or None to clear all
    """
    if slug:
        _school_cache.pop(slug, None)
    else:
        _school_cache.clear()

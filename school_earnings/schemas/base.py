"""
Base Schema Classes for Pydantic Models

The dashboards consume camelCase JSON, so every schema here exposes
snake_case attributes in Python and camelCase aliases on the wire.

RULE: All response schemas that use `from_attributes=True` MUST inherit from BaseResponseSchema.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseResponseSchema(BaseModel):
    """
    Base class for all response schemas.

    Features:
    - Enables from_attributes for ORM compatibility
    - camelCase aliases, population by field name or alias
    - Consistent datetime serialization

    Usage:
        class SchoolResponse(BaseResponseSchema):
            id: str
            slug: str
    """
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        json_encoders={
            datetime: lambda v: v.isoformat() if v else None,
        },
        # Allow population by field name or alias
        populate_by_name=True,
    )


class BaseCreateSchema(BaseModel):
    """
    Base class for create/input schemas.

    Accepts camelCase (as sent by the dashboards) or snake_case keys.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        # Allow extra fields to be ignored (forward compatibility)
        extra='ignore',
    )

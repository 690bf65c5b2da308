"""
Shared schema building blocks.

WHY: The public API speaks camelCase (``totalCount``, ``ticketTypeId``)
while Python code stays snake_case. CamelModel accepts either spelling on
input and always emits camelCase.
"""

import math
from typing import Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base for every request and response schema."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MessageResponse(CamelModel):
    message: str = Field(..., description="Human-readable outcome")


class PaginatedResponse(CamelModel, Generic[T]):
    """
    One page of a listing.

    ``page`` is 1-based; ``total_pages`` is 0 for an empty listing.
    """

    items: List[T]
    total_count: int = Field(..., description="Rows across all pages")
    page: int
    page_size: int
    total_pages: int


def paginated(items: List[T], total: int, page: int, page_size: int) -> dict:
    return {
        "items": items,
        "total_count": total,
        "page": page,
        "page_size": page_size,
        "total_pages": math.ceil(total / page_size) if page_size else 0,
    }

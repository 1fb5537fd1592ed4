"""
Pagination envelope for windowed provider results
"""

from typing import Any, Dict, List, Sequence

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class PageInfo(BaseModel):
    """Window that was requested and how much of it was filled"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    offset: int
    limit: int
    count: int


class PageEnvelope(BaseModel):
    """Paginated response metadata"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_results: int
    total_available: int  # lower-bound estimate, the provider reports no totals
    current_page: PageInfo
    has_more: bool


def build_page_response(
    items: Sequence[Any],
    limit: int,
    offset: int,
    items_key: str,
    **context: Any,
) -> Dict[str, Any]:
    """
    Wrap one page of results in the envelope routers return.

    A full page implies there may be more; totalAvailable then assumes at
    least one further page.
    """
    count = len(items)
    has_more = count == limit
    envelope = PageEnvelope(
        total_results=count,
        total_available=offset + count + (limit if has_more else 0),
        current_page=PageInfo(offset=offset, limit=limit, count=count),
        has_more=has_more,
    )
    payload: List[Any] = [
        item.to_payload() if hasattr(item, "to_payload") else item for item in items
    ]
    return {**context, **envelope.model_dump(by_alias=True), items_key: payload}

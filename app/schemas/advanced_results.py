from pydantic import BaseModel, model_serializer
from typing import Any, Dict, List, Optional


class PageRef(BaseModel):
    page: int
    limit: int


class Pagination(BaseModel):
    next: Optional[PageRef] = None
    prev: Optional[PageRef] = None

    @model_serializer(mode="wrap")
    def _drop_missing(self, handler):
        # Absent neighbours are omitted, not rendered as null.
        return {k: v for k, v in handler(self).items() if v is not None}


class AdvancedResults(BaseModel):
    success: bool = True
    count: int
    pagination: Pagination = Pagination()
    data: List[Dict[str, Any]] = []

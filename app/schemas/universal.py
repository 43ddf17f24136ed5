from pydantic import BaseModel, Field
from typing import Any, List, Literal, Optional, Union

Op = Literal["=", "!=", "<>", ">", "<", ">=", "<=", "LIKE"]
Function = Literal["none", "date", "in", "between", "like"]
Dir = Literal["asc", "desc"]

OPERATORS = ("=", "!=", "<>", ">", "<", ">=", "<=", "LIKE")
FUNCTIONS = ("none", "date", "in", "between", "like")

class FilterClause(BaseModel):
    field: str
    op: Op = "="
    value: Any = None
    function: Function = "none"

class RelationFilter(FilterClause):
    """Clause on ``relation.field``, evaluated through the named relationship."""

    relation: str


class SearchGroup(BaseModel):
    """Free-text term matched against every field with OR; ANDed with the rest."""

    fields: List[str]
    term: str

ParsedFilter = Union[RelationFilter, FilterClause, SearchGroup]

class QueryOptions(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1)
    sort: str = "created_at"
    order: Dir = "desc"
    relations: List[str] = []
    q: Optional[str] = None
    filter: Optional[str] = None
    include_deleted: bool = False

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

class PaginationEnvelope(BaseModel):
    data: List[dict[str, Any]]
    total: int
    page: int
    limit: int

"""Query parameter, filter and paged result models"""

from enum import StrEnum
from math import ceil
from typing import Any, Generic, Iterator, List, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, computed_field, model_validator

from school_query.config import _to_int, normalize_pagination


class FilterOperator(StrEnum):
    """Filter operators"""

    CONTAINS = "contains"  # case-insensitive substring (:)
    EQ = "eq"  # equals (= or ==)
    NE = "ne"  # not equals (!=)
    GT = "gt"  # greater than (>)
    GTE = "gte"  # greater than or equal (>=)
    LT = "lt"  # less than (<)
    LTE = "lte"  # less than or equal (<=)

    @property
    def token(self) -> str:
        """Delimiter used for this operator in the advanced filter syntax."""
        return _OPERATOR_TOKENS[self]

    @classmethod
    def from_token(cls, token: str) -> "FilterOperator":
        """
        Resolve an operator from its delimiter.

        Raises:
            ValueError: If the token is not a known delimiter
        """
        try:
            return _TOKEN_OPERATORS[token]
        except KeyError:
            raise ValueError(f"Unknown filter operator '{token}'") from None


_OPERATOR_TOKENS = {
    FilterOperator.CONTAINS: ":",
    FilterOperator.EQ: "=",
    FilterOperator.NE: "!=",
    FilterOperator.GT: ">",
    FilterOperator.GTE: ">=",
    FilterOperator.LT: "<",
    FilterOperator.LTE: "<=",
}

_TOKEN_OPERATORS = {token: op for op, token in _OPERATOR_TOKENS.items()}
_TOKEN_OPERATORS["=="] = FilterOperator.EQ


class Combinator(StrEnum):
    """Logical combinators"""

    AND = "and"  # ;
    OR = "or"  # |

    @property
    def token(self) -> str:
        return ";" if self is Combinator.AND else "|"


T = TypeVar("T")


class FilterClause(BaseModel):
    """A single (field, operator, value) condition."""

    model_config = ConfigDict(frozen=True)

    field: str
    operator: FilterOperator
    value: Any
    raw_value: Optional[str] = None

    def to_string(self) -> str:
        """Render the clause in the advanced filter syntax."""
        raw = self.raw_value if self.raw_value is not None else str(self.value)
        return f"{self.field}{self.operator.token}{raw}"


class FilterExpression(BaseModel):
    """
    Parsed filter expression.

    Leaf ``clauses`` and nested ``groups`` are joined by ``combinator``.
    Expressions produced by the parser are at most two levels deep: the
    grouped combinator policy yields an OR of AND groups.

    Example:
        # "Valor>50;Nombre:Maria"
        FilterExpression(
            combinator=Combinator.AND,
            clauses=[
                FilterClause(field="Valor", operator=FilterOperator.GT, value=50),
                FilterClause(field="Nombre", operator=FilterOperator.CONTAINS, value="Maria"),
            ],
        )
    """

    model_config = ConfigDict(frozen=True)

    combinator: Combinator = Combinator.AND
    clauses: List[FilterClause] = Field(default_factory=list)
    groups: List["FilterExpression"] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.clauses and all(g.is_empty for g in self.groups)

    def iter_clauses(self) -> Iterator[FilterClause]:
        """Yield every leaf clause, depth first."""
        yield from self.clauses
        for group in self.groups:
            yield from group.iter_clauses()

    def to_string(self) -> str:
        """Render the expression back to the advanced filter syntax."""
        parts = [c.to_string() for c in self.clauses]
        parts.extend(g.to_string() for g in self.groups if not g.is_empty)
        return self.combinator.token.join(parts)

    def __len__(self) -> int:
        return sum(1 for _ in self.iter_clauses())

    def __bool__(self) -> bool:
        return not self.is_empty


FilterExpression.model_rebuild()


class SortDescriptor(BaseModel):
    """Single-field ordering"""

    model_config = ConfigDict(frozen=True)

    field: str
    descending: bool = False


class QueryParams(BaseModel):
    """
    Raw list-request parameters.

    Accepts both snake_case names and the camelCase query-string names
    (``pageSize``, ``filterField``, ``sortDesc``...). ``page`` and
    ``page_size`` are clamped on construction; garbage becomes the default.
    The values as sent stay available as ``raw_page`` and ``raw_page_size``
    (None when not given) so a QueryConfig can apply its own defaults.
    """

    model_config = ConfigDict(populate_by_name=True)

    page: Union[int, str, None] = 1
    page_size: Union[int, str, None] = Field(default=20, alias="pageSize")
    max_page_size: Union[int, str, None] = Field(default=100, alias="maxPageSize")
    filter_field: Optional[str] = Field(default=None, alias="filterField")
    filter_value: Optional[str] = Field(default=None, alias="filterValue")
    filter: Optional[str] = None
    sort_field: Optional[str] = Field(default=None, alias="sortField")
    sort_desc: bool = Field(default=False, alias="sortDesc")

    _raw_page: Any = PrivateAttr(default=None)
    _raw_page_size: Any = PrivateAttr(default=None)
    _page_size_cap: Optional[int] = PrivateAttr(default=None)

    @model_validator(mode="after")
    def _clamp(self) -> "QueryParams":
        # read before assigning below, which marks fields as set
        given = set(self.model_fields_set)
        if "page" in given:
            self._raw_page = self.page
        if "page_size" in given:
            self._raw_page_size = self.page_size
        max_size = _to_int(self.max_page_size)
        self.max_page_size = max_size if max_size and max_size > 0 else 100
        if "max_page_size" in given:
            self._page_size_cap = self.max_page_size
        self.page, self.page_size = normalize_pagination(
            self.page, self.page_size, self.max_page_size
        )
        return self

    @property
    def raw_page(self) -> Any:
        return self._raw_page

    @property
    def raw_page_size(self) -> Any:
        return self._raw_page_size

    @property
    def page_size_cap(self) -> Optional[int]:
        """max_page_size when given explicitly, else None."""
        return self._page_size_cap


class PagedResult(BaseModel, Generic[T]):
    """
    Page of items plus navigation metadata.

    Serializes (by alias) as ``items, totalCount, page, pageSize,
    totalPages, hasPreviousPage, hasNextPage``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    items: List[T] = Field(default_factory=list)
    total_count: int = Field(default=0, ge=0, alias="totalCount")
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, alias="pageSize")

    @computed_field(alias="totalPages")
    @property
    def total_pages(self) -> int:
        return ceil(self.total_count / self.page_size)

    @computed_field(alias="hasPreviousPage")
    @property
    def has_previous_page(self) -> bool:
        return self.page > 1

    @computed_field(alias="hasNextPage")
    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

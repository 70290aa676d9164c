"""Normalized description of a list request, handed to the data-access layer."""

import logging
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from school_query.config import QueryConfig
from school_query.fields import FieldRegistry
from school_query.filters import FilterParser
from school_query.models import (
    Combinator,
    FilterClause,
    FilterExpression,
    QueryParams,
    SortDescriptor,
)
from school_query.sorting import SortEngine

logger = logging.getLogger(__name__)


class QueryPlan(BaseModel):
    """Page bounds, ordering and predicate for one list request."""

    model_config = ConfigDict(frozen=True)

    page: int = Field(ge=1)
    page_size: int = Field(ge=1)
    sort: Optional[SortDescriptor] = None
    filter: FilterExpression = Field(default_factory=FilterExpression)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size


def _combine(
    advanced: FilterExpression, simple: Optional[FilterClause], compose: bool
) -> FilterExpression:
    if simple is None:
        return advanced
    if advanced.is_empty:
        return FilterExpression(combinator=Combinator.AND, clauses=[simple])
    if not compose:
        return advanced
    if advanced.combinator is Combinator.AND:
        return FilterExpression(
            combinator=Combinator.AND,
            clauses=[*advanced.clauses, simple],
            groups=advanced.groups,
        )
    return FilterExpression(combinator=Combinator.AND, clauses=[simple], groups=[advanced])


def build_query_plan(
    params: QueryParams,
    registry: Optional[FieldRegistry] = None,
    config: Optional[QueryConfig] = None,
    extra_clauses: Optional[List[FilterClause]] = None,
) -> QueryPlan:
    """
    Turn raw list parameters into a query plan.

    Args:
        params: Raw request parameters
        registry: Fields the entity exposes; None parses syntax only
        config: Limits and validation policy (defaults to QueryConfig())
        extra_clauses: Server-side restrictions ANDed with the user's filter

    Returns:
        QueryPlan: Normalized plan

    Raises:
        QueryValidationError: In strict mode, for invalid filter or sort input
    """
    config = config or QueryConfig()
    page, page_size = config.normalize(params.raw_page, params.raw_page_size)
    if params.page_size_cap is not None:
        page_size = min(page_size, params.page_size_cap)

    parser = FilterParser(
        registry,
        strict_mode=config.strict_mode,
        mixed_combinators=config.mixed_combinators,
    )
    advanced = parser.parse(params.filter)
    simple = parser.simple_clause(params.filter_field, params.filter_value)
    expression = _combine(advanced, simple, config.compose_simple_filter)
    if extra_clauses:
        expression = FilterExpression(
            combinator=Combinator.AND,
            clauses=list(extra_clauses),
            groups=[expression] if not expression.is_empty else [],
        )

    sort = SortEngine(registry, strict_mode=config.strict_mode).descriptor(
        params.sort_field, params.sort_desc
    )

    plan = QueryPlan(page=page, page_size=page_size, sort=sort, filter=expression)
    logger.debug(
        "Query plan: page=%d page_size=%d sort=%s filter=%r",
        plan.page,
        plan.page_size,
        plan.sort,
        plan.filter.to_string(),
    )
    return plan

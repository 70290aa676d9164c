"""FastAPI dependency tying the query plan to SQLModel queries."""

import logging
from dataclasses import replace
from typing import Annotated, Any, List, Optional, Type

from fastapi import Depends, Query, Response
from sqlalchemy import Select
from sqlmodel import Session, SQLModel, select
from sqlmodel.ext.asyncio.session import AsyncSession

from school_query.config import QueryConfig
from school_query.fields import FieldRegistry
from school_query.filters import FilterEngine
from school_query.models import FilterClause, PagedResult, QueryParams
from school_query.pagination import PaginationEngine
from school_query.plan import QueryPlan, build_query_plan
from school_query.sorting import SortEngine

logger = logging.getLogger(__name__)

TOTAL_COUNT_HEADER = "X-Total-Count"


class RawQueryParams:
    """Query-string values exactly as sent; numbers are normalized later."""

    def __init__(
        self,
        page: Optional[str] = Query(None, description="Page number (>= 1)"),
        page_size: Optional[str] = Query(None, alias="pageSize", description="Items per page"),
        filter_field: Optional[str] = Query(None, alias="filterField"),
        filter_value: Optional[str] = Query(None, alias="filterValue"),
        filter: Optional[str] = Query(
            None,
            description="Advanced filter, e.g. 'Nombre:Juan;Valor>50' or 'Nombre:Juan|Nombre:Maria'",
        ),
        sort_field: Optional[str] = Query(None, alias="sortField"),
        sort_desc: bool = Query(False, alias="sortDesc"),
    ):
        self.page = page
        self.page_size = page_size
        self.filter_field = filter_field
        self.filter_value = filter_value
        self.filter = filter
        self.sort_field = sort_field
        self.sort_desc = sort_desc


class QueryManager:
    """
    Filtering, sorting and pagination for list endpoints.

    Use as a dependency; it reads ``page``, ``pageSize``, ``filterField``,
    ``filterValue``, ``filter``, ``sortField`` and ``sortDesc``.

    Example:
        @app.get("/estudiantes/", response_model=PagedResult[EstudiantePublic])
        def list_estudiantes(
            session: Session = Depends(get_session),
            qm: QueryManager = Depends(QueryManager),
        ):
            return qm.from_model(Estudiante, session)
    """

    def __init__(
        self,
        response: Response,
        raw: Annotated[RawQueryParams, Depends(RawQueryParams)],
    ):
        """
        Initialize QueryManager.

        Args:
            response: Outgoing response (receives the X-Total-Count header)
            raw: Raw query-string values
        """
        self.response = response
        self.raw = raw
        self.config = QueryConfig()
        self.extra_clauses: List[FilterClause] = []

    @property
    def params(self) -> QueryParams:
        """
        Request parameters as sent.

        Missing or garbage page values are resolved against the current
        config when the plan is built.
        """
        return QueryParams(
            page=self.raw.page,
            page_size=self.raw.page_size,
            max_page_size=self.config.max_page_size,
            filter_field=self.raw.filter_field,
            filter_value=self.raw.filter_value,
            filter=self.raw.filter,
            sort_field=self.raw.sort_field,
            sort_desc=self.raw.sort_desc,
        )

    @property
    def strict_mode(self) -> bool:
        return self.config.strict_mode

    @strict_mode.setter
    def strict_mode(self, value: bool) -> None:
        self.config = replace(self.config, strict_mode=value)

    def apply_config(self, config: QueryConfig) -> "QueryManager":
        """
        Use a configuration for this request.

        Args:
            config: QueryConfig instance with settings

        Returns:
            QueryManager: Self for chaining
        """
        self.config = config
        return self

    def with_clauses(self, clauses: Optional[List[FilterClause]]) -> "QueryManager":
        """
        AND server-side restrictions onto whatever the client asked for.

        Typical use is row-level access, e.g. a student may only list their
        own grades.

        Args:
            clauses: Clauses to add

        Returns:
            QueryManager: Self for chaining
        """
        if clauses:
            self.extra_clauses.extend(clauses)
        return self

    def plan(self, registry: Optional[FieldRegistry] = None) -> QueryPlan:
        """
        Build the query plan for this request.

        Raises:
            QueryValidationError: In strict mode, for invalid filter or sort input
        """
        return build_query_plan(
            self.params, registry, self.config, extra_clauses=self.extra_clauses
        )

    def _prepare(self, query: Select, registry: Optional[FieldRegistry]):
        query_fields = FieldRegistry.from_query(query)
        if registry is None:
            registry = query_fields
        plan = build_query_plan(self.params, registry, self.config)
        query = FilterEngine(registry).apply_filters(query, plan.filter)
        # server-side clauses may use columns the client cannot see
        query = FilterEngine(registry.with_fallback(query_fields)).apply_clauses(
            query, self.extra_clauses
        )
        query = SortEngine(registry, strict_mode=self.config.strict_mode).apply_sort(
            query, plan.sort
        )
        return query, PaginationEngine(plan.page, plan.page_size)

    def _finish(self, engine: PaginationEngine, data_page: Any, total: int) -> PagedResult[Any]:
        self.response.headers[TOTAL_COUNT_HEADER] = str(total)
        logger.debug("Returning page %d (%d of %d items)", engine.page, len(data_page), total)
        return engine.build_result(data_page, total)

    def generate_result(
        self, query: Select, session: Session, registry: Optional[FieldRegistry] = None
    ) -> PagedResult[Any]:
        """
        Filter, sort, count and paginate a query.

        Args:
            query: Base SQLAlchemy Select query
            session: Database session
            registry: Exposed fields; defaults to every selected column

        Returns:
            PagedResult: Complete paged result
        """
        query, engine = self._prepare(query, registry)
        data_page, total = engine.paginate_with_count(query, session)
        return self._finish(engine, data_page, total)

    async def generate_result_async(
        self, query: Select, session: AsyncSession, registry: Optional[FieldRegistry] = None
    ) -> PagedResult[Any]:
        """Async version of generate_result."""
        query, engine = self._prepare(query, registry)
        data_page, total = await engine.paginate_with_count_async(query, session)
        return self._finish(engine, data_page, total)

    def from_model(
        self,
        model: Type[SQLModel],
        session: Session,
        registry: Optional[FieldRegistry] = None,
    ) -> PagedResult[Any]:
        """
        Convenience method to list a model directly.

        Args:
            model: SQLModel class to query
            session: Database session
            registry: Exposed fields; defaults to all of the model's columns

        Returns:
            PagedResult: Complete paged result
        """
        if registry is None:
            registry = FieldRegistry.from_model(model)
        return self.generate_result(select(model), session, registry)

    async def from_model_async(
        self,
        model: Type[SQLModel],
        session: AsyncSession,
        registry: Optional[FieldRegistry] = None,
    ) -> PagedResult[Any]:
        """Async version of from_model."""
        if registry is None:
            registry = FieldRegistry.from_model(model)
        return await self.generate_result_async(select(model), session, registry)

"""Pagination engine and paged result construction."""

from typing import Any, Sequence, Tuple

from sqlalchemy import Select, func
from sqlmodel import Session, select
from sqlmodel.ext.asyncio.session import AsyncSession

from school_query.config import normalize_pagination
from school_query.models import PagedResult

__all__ = ["PaginationEngine", "build_paged_result", "normalize_pagination"]


def build_paged_result(
    items: Sequence[Any], total_count: int, page: int, page_size: int
) -> PagedResult[Any]:
    """
    Wrap an already-paginated page of items.

    The caller guarantees ``len(items) <= page_size`` and that
    ``total_count`` counts the filtered, unpaginated set; neither is
    re-checked here.

    Args:
        items: Items of the current page, in order
        total_count: Number of matching items across all pages
        page: Current page number (>= 1)
        page_size: Items per page (>= 1)

    Returns:
        PagedResult: Immutable result envelope
    """
    return PagedResult(
        items=list(items),
        total_count=total_count,
        page=page,
        page_size=page_size,
    )


class PaginationEngine:
    """
    Engine for paginating queries and building paged results.

    Counting and fetching are two separate statements run on the caller's
    session; the engine never opens or commits a transaction.
    """

    def __init__(self, page: int, page_size: int):
        """
        Initialize PaginationEngine.

        Args:
            page: Normalized page number (>= 1)
            page_size: Normalized items per page (>= 1)
        """
        self.page = page
        self.page_size = page_size

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def limit_query(self, query: Select) -> Select:
        """Add OFFSET/LIMIT for the current page."""
        return query.offset(self.offset).limit(self.page_size)

    @staticmethod
    def count_query(query: Select) -> Select:
        """Build ``SELECT count(*)`` over the filtered query."""
        return select(func.count()).select_from(query.order_by(None).subquery())

    # --- Sync methods ---

    def paginate(self, query: Select, session: Session) -> Any:
        """
        Execute the query for the current page.

        Args:
            query: SQLAlchemy Select query (filters and sort applied)
            session: Database session

        Returns:
            Any: Rows of the current page
        """
        return session.exec(self.limit_query(query)).all()

    def count_total(self, query: Select, session: Session) -> int:
        """
        Count all items matching the query.

        Args:
            query: SQLAlchemy Select query with filters applied
            session: Database session

        Returns:
            int: Total count of items
        """
        return session.exec(self.count_query(query)).one()

    def paginate_with_count(self, query: Select, session: Session) -> Tuple[Any, int]:
        """
        Count and fetch the current page.

        Returns:
            Tuple[Any, int]: (page_data, total_count)
        """
        total = self.count_total(query, session)
        if total == 0 or self.offset >= total:
            return [], total
        return self.paginate(query, session), total

    # --- Async methods ---

    async def paginate_async(self, query: Select, session: AsyncSession) -> Any:
        """Async version of paginate."""
        result = await session.exec(self.limit_query(query))
        return result.all()

    async def count_total_async(self, query: Select, session: AsyncSession) -> int:
        """Async version of count_total."""
        result = await session.exec(self.count_query(query))
        return result.one()

    async def paginate_with_count_async(
        self, query: Select, session: AsyncSession
    ) -> Tuple[Any, int]:
        """Async version of paginate_with_count."""
        total = await self.count_total_async(query, session)
        if total == 0 or self.offset >= total:
            return [], total
        return await self.paginate_async(query, session), total

    # --- Result building ---

    def build_result(self, items: Sequence[Any], total_count: int) -> PagedResult[Any]:
        """
        Build the paged result for this engine's page and page size.

        Args:
            items: Current page of data
            total_count: Total number of items matching filters

        Returns:
            PagedResult: Final result object
        """
        return build_paged_result(items, total_count, self.page, self.page_size)

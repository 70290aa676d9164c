"""Filter presets for the audit and soft-delete columns shared by school entities."""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from school_query.models import FilterClause, FilterOperator


class CommonFilters:
    """
    Pre-defined clauses for frequently used restrictions.

    Every entity (Estudiante, Profesor, Nota, Usuario...) carries
    ``is_deleted`` and ``created_at`` columns, so these presets work with
    ``QueryManager.with_clauses`` on any list endpoint.

    Example usage:
        qm.with_clauses(CommonFilters.active())

        # Combine presets
        qm.with_clauses(CommonFilters.active() + CommonFilters.created_since(days=30))
    """

    @staticmethod
    def active(deleted_field: str = "is_deleted") -> List[FilterClause]:
        """
        Records that have not been soft-deleted.

        Args:
            deleted_field: Name of the boolean soft-delete field
        """
        return [
            FilterClause(
                field=deleted_field, operator=FilterOperator.EQ, value=False, raw_value="false"
            )
        ]

    @staticmethod
    def deleted(deleted_field: str = "is_deleted") -> List[FilterClause]:
        """
        Soft-deleted records only.

        Args:
            deleted_field: Name of the boolean soft-delete field
        """
        return [
            FilterClause(
                field=deleted_field, operator=FilterOperator.EQ, value=True, raw_value="true"
            )
        ]

    @staticmethod
    def created_since(
        days: int = 30,
        date_field: str = "created_at",
        reference_time: Optional[datetime] = None,
    ) -> List[FilterClause]:
        """
        Records created in the last N days.

        Args:
            days: Number of days to look back
            date_field: Name of the creation timestamp field
            reference_time: Reference time (default: now, UTC)
        """
        if reference_time is None:
            reference_time = datetime.now(timezone.utc)
        cutoff = reference_time - timedelta(days=days)
        return [
            FilterClause(
                field=date_field,
                operator=FilterOperator.GTE,
                value=cutoff,
                raw_value=cutoff.isoformat(),
            )
        ]

    @staticmethod
    def created_before(
        days: int = 30,
        date_field: str = "created_at",
        reference_time: Optional[datetime] = None,
    ) -> List[FilterClause]:
        """
        Records created more than N days ago.

        Args:
            days: Age threshold in days
            date_field: Name of the creation timestamp field
            reference_time: Reference time (default: now, UTC)
        """
        if reference_time is None:
            reference_time = datetime.now(timezone.utc)
        cutoff = reference_time - timedelta(days=days)
        return [
            FilterClause(
                field=date_field,
                operator=FilterOperator.LT,
                value=cutoff,
                raw_value=cutoff.isoformat(),
            )
        ]

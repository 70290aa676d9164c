"""Sort engine for single-field ordering."""

import logging
from typing import Optional

from sqlalchemy import Select

from school_query.exceptions import UnknownFieldError
from school_query.fields import FieldRegistry
from school_query.models import SortDescriptor

logger = logging.getLogger(__name__)


class SortEngine:
    """
    Engine for resolving and applying the sortField/sortDesc pair.

    Only one sort key is supported. Without a sort field the backing store's
    default order is kept.
    """

    def __init__(self, registry: Optional[FieldRegistry] = None, strict_mode: bool = True):
        """
        Initialize SortEngine.

        Args:
            registry: Sortable fields; None accepts any field name as written
            strict_mode: If True, raise errors for unknown sort fields
        """
        self.registry = registry
        self.strict_mode = strict_mode

    def descriptor(
        self, sort_field: Optional[str], descending: bool = False
    ) -> Optional[SortDescriptor]:
        """
        Build the ordering descriptor.

        Args:
            sort_field: Requested field, may be None or blank
            descending: True for descending order

        Returns:
            Optional[SortDescriptor]: Descriptor, or None for default order

        Raises:
            UnknownFieldError: If strict_mode is True and the field is not sortable
        """
        if sort_field is None or not sort_field.strip():
            return None
        name = sort_field.strip()
        if self.registry is None:
            return SortDescriptor(field=name, descending=descending)

        spec = self.registry.get(name)
        if spec is None or not spec.sortable:
            if self.strict_mode:
                raise UnknownFieldError(name, self.registry.sortable_names(), purpose="sort")
            logger.warning("Ignoring unknown sort field %r", name)
            return None
        return SortDescriptor(field=spec.name, descending=descending)

    def apply_sort(self, query: Select, sorting: Optional[SortDescriptor]) -> Select:
        """
        Apply sorting to a query.

        Args:
            query: Base SQLAlchemy Select query
            sorting: Ordering descriptor

        Returns:
            Select: Query with ORDER BY applied

        Raises:
            ValueError: If the engine has no registry or the field has no column
        """
        if sorting is None:
            return query
        if self.registry is None:
            raise ValueError("SortEngine needs a FieldRegistry to build ORDER BY")
        spec = self.registry.get(sorting.field)
        if spec is None:
            raise UnknownFieldError(sorting.field, self.registry.sortable_names(), purpose="sort")
        if spec.column is None:
            raise ValueError(f"Field '{spec.name}' has no column bound")
        column = spec.column
        return query.order_by(column.desc() if sorting.descending else column.asc())

"""FilterBuilder API for composing filter expressions with a fluent interface."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Union

from school_query.models import Combinator, FilterClause, FilterExpression, FilterOperator

Scalar = Union[str, int, float, Decimal, bool, date, datetime, Enum]


class FieldBuilder:
    """
    Builder for a single field's condition.

    Each method adds one clause and returns the parent FilterBuilder.
    Values containing ';' or '|' raise ValueError.
    """

    def __init__(self, filter_builder: "FilterBuilder", field: str):
        self._filter_builder = filter_builder
        self._field = field

    def _add(self, operator: FilterOperator, value: Scalar) -> "FilterBuilder":
        raw = self._to_str(value)
        # the filter syntax has no escaping for combinators
        if any(c.token in raw for c in Combinator):
            raise ValueError(
                f"Value {raw!r} for field '{self._field}' cannot contain ';' or '|'"
            )
        self._filter_builder._clauses.append(
            FilterClause(
                field=self._field,
                operator=operator,
                value=value,
                raw_value=raw,
            )
        )
        return self._filter_builder

    @staticmethod
    def _to_str(value: Scalar) -> str:
        """Convert a value to its filter-string representation."""
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, Enum):
            return str(value.value)
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        return str(value)

    def contains(self, substring: str) -> "FilterBuilder":
        """Case-insensitive substring match (``:``)."""
        return self._add(FilterOperator.CONTAINS, substring)

    def eq(self, value: Scalar) -> "FilterBuilder":
        """Equal to (``=``)."""
        return self._add(FilterOperator.EQ, value)

    def ne(self, value: Scalar) -> "FilterBuilder":
        """Not equal to (``!=``)."""
        return self._add(FilterOperator.NE, value)

    def gt(self, value: Scalar) -> "FilterBuilder":
        """Greater than (``>``)."""
        return self._add(FilterOperator.GT, value)

    def gte(self, value: Scalar) -> "FilterBuilder":
        """Greater than or equal to (``>=``)."""
        return self._add(FilterOperator.GTE, value)

    def lt(self, value: Scalar) -> "FilterBuilder":
        """Less than (``<``)."""
        return self._add(FilterOperator.LT, value)

    def lte(self, value: Scalar) -> "FilterBuilder":
        """Less than or equal to (``<=``)."""
        return self._add(FilterOperator.LTE, value)


class FilterBuilder:
    """
    Fluent builder for filter expressions.

    Example usage:
        expression = (
            FilterBuilder()
            .where("Nombre").contains("Maria")
            .where("Valor").gt(50)
            .build()
        )

        # Same thing as a query-string value: "Nombre:Maria;Valor>50"
        FilterBuilder().where("Nombre").contains("Maria").where("Valor").gt(50).to_string()

    Clauses are ANDed unless ``any_of()`` is called.
    """

    def __init__(self):
        self._clauses: List[FilterClause] = []
        self._combinator = Combinator.AND

    def where(self, field: str) -> FieldBuilder:
        """
        Start a condition on a field.

        Args:
            field: Name of the field to filter on

        Returns:
            FieldBuilder: Builder for the field's condition
        """
        return FieldBuilder(self, field)

    def add_clauses(self, clauses: List[FilterClause]) -> "FilterBuilder":
        """Add existing clauses (e.g. from CommonFilters)."""
        self._clauses.extend(clauses)
        return self

    def any_of(self) -> "FilterBuilder":
        """Combine clauses with OR instead of AND."""
        self._combinator = Combinator.OR
        return self

    def all_of(self) -> "FilterBuilder":
        """Combine clauses with AND (the default)."""
        self._combinator = Combinator.AND
        return self

    def clauses(self) -> List[FilterClause]:
        return list(self._clauses)

    def build(self) -> FilterExpression:
        """Build the expression."""
        return FilterExpression(combinator=self._combinator, clauses=list(self._clauses))

    def to_string(self) -> str:
        """Render the expression in the advanced filter syntax."""
        return self.build().to_string()

    def __len__(self) -> int:
        return len(self._clauses)

    def __bool__(self) -> bool:
        return bool(self._clauses)

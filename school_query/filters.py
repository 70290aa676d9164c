"""Filter expression parsing and SQL filter strategies."""

import logging
import math
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional

from dateutil.parser import ParserError, parse
from sqlalchemy import ColumnElement, Select, and_, func, or_

from school_query.config import MixedCombinatorPolicy
from school_query.exceptions import (
    InvalidClauseError,
    MixedCombinatorError,
    QueryValidationError,
    UnknownFieldError,
    ValueCoercionError,
)
from school_query.fields import FieldRegistry, FieldSpec, FieldType
from school_query.models import Combinator, FilterClause, FilterExpression, FilterOperator

logger = logging.getLogger(__name__)

# field (dotted paths allowed), operator (longest tokens first), value
_CLAUSE_RE = re.compile(r"^\s*(\w+(?:\.\w+)*)\s*(==|!=|>=|<=|=|>|<|:)\s*(.*?)\s*$")

_TRUE_WORDS = {"true", "1", "t", "yes", "y", "si", "sí"}
_FALSE_WORDS = {"false", "0", "f", "no", "n"}

_STRING_OPERATORS = {FilterOperator.CONTAINS, FilterOperator.EQ, FilterOperator.NE}
_EQUALITY_OPERATORS = {FilterOperator.EQ, FilterOperator.NE}
_ORDERED_OPERATORS = set(FilterOperator) - {FilterOperator.CONTAINS}

# int(), float() and Decimal() accept "1_000"; filter values do not
_NUMERIC_TYPES = {
    FieldType.INTEGER: "an integer",
    FieldType.DECIMAL: "a number",
    FieldType.FLOAT: "a number",
}

_ALLOWED_OPERATORS = {
    FieldType.STRING: _STRING_OPERATORS,
    FieldType.BOOLEAN: _EQUALITY_OPERATORS,
    FieldType.ENUM: _EQUALITY_OPERATORS,
    FieldType.INTEGER: _ORDERED_OPERATORS,
    FieldType.DECIMAL: _ORDERED_OPERATORS,
    FieldType.FLOAT: _ORDERED_OPERATORS,
    FieldType.DATETIME: _ORDERED_OPERATORS,
    FieldType.DATE: _ORDERED_OPERATORS,
}


def _coerce_value(spec: FieldSpec, raw: str) -> Any:
    """
    Coerce a raw clause value to the field's Python type.

    Args:
        spec: Target field
        raw: Raw (already trimmed) value

    Returns:
        Any: Coerced value

    Raises:
        ValueCoercionError: If the value cannot be converted
    """
    ftype = spec.type
    if ftype is FieldType.STRING:
        return raw
    if ftype in _NUMERIC_TYPES and "_" in raw:
        raise ValueCoercionError(spec.name, raw, _NUMERIC_TYPES[ftype])
    if ftype is FieldType.BOOLEAN:
        val = raw.lower()
        if val in _TRUE_WORDS:
            return True
        if val in _FALSE_WORDS:
            return False
        raise ValueCoercionError(spec.name, raw, "a boolean")
    if ftype is FieldType.INTEGER:
        try:
            return int(raw)
        except ValueError:
            try:
                as_float = float(raw)
            except ValueError:
                raise ValueCoercionError(spec.name, raw, "an integer") from None
            if not as_float.is_integer():
                raise ValueCoercionError(spec.name, raw, "an integer")
            return int(as_float)
    if ftype is FieldType.DECIMAL:
        try:
            value = Decimal(raw.replace(",", "."))
        except InvalidOperation:
            raise ValueCoercionError(spec.name, raw, "a number") from None
        if not value.is_finite():
            raise ValueCoercionError(spec.name, raw, "a number")
        return value
    if ftype is FieldType.FLOAT:
        try:
            value = float(raw.replace(",", "."))
        except ValueError:
            raise ValueCoercionError(spec.name, raw, "a number") from None
        if not math.isfinite(value):
            raise ValueCoercionError(spec.name, raw, "a number")
        return value
    if ftype is FieldType.DATETIME:
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            try:
                return parse(raw)
            except (ParserError, OverflowError):
                raise ValueCoercionError(spec.name, raw, "a date/time") from None
    if ftype is FieldType.DATE:
        try:
            return date.fromisoformat(raw)
        except ValueError:
            try:
                return parse(raw).date()
            except (ParserError, OverflowError):
                raise ValueCoercionError(spec.name, raw, "a date") from None
    if ftype is FieldType.ENUM:
        return _coerce_enum(spec, raw)
    return raw


def _coerce_enum(spec: FieldSpec, raw: str) -> Any:
    enum_type = spec.enum_type
    if enum_type is None:
        return raw
    wanted = raw.lower()
    for member in enum_type:
        if member.name.lower() == wanted or str(member.value).lower() == wanted:
            return member
    choices = ", ".join(str(m.value) for m in enum_type)
    raise ValueCoercionError(spec.name, raw, f"one of: {choices}")


def _split_parts(raw: str, delimiter: str) -> List[str]:
    """Split on a delimiter, dropping blank parts."""
    return [part.strip() for part in raw.split(delimiter) if part.strip()]


class FilterParser:
    """
    Parser for the advanced filter syntax.

    ``Nombre:Juan`` (contains), ``Id=5`` (equals), ``Valor>50;Nombre:Maria``
    (AND), ``Nombre:Juan|Nombre:Maria`` (OR). Supported operators are
    ``:``, ``=``/``==``, ``!=``, ``>``, ``>=``, ``<`` and ``<=``.

    In strict mode every problem raises a ``QueryValidationError``; otherwise
    the offending clause is dropped and logged.
    """

    def __init__(
        self,
        registry: Optional[FieldRegistry] = None,
        strict_mode: bool = True,
        mixed_combinators: MixedCombinatorPolicy = MixedCombinatorPolicy.REJECT,
    ):
        """
        Initialize FilterParser.

        Args:
            registry: Allowed fields; None parses syntax only (values stay strings)
            strict_mode: If True, raise on invalid input instead of dropping clauses
            mixed_combinators: Policy for expressions containing both ';' and '|'
        """
        self.registry = registry
        self.strict_mode = strict_mode
        self.mixed_combinators = MixedCombinatorPolicy(mixed_combinators)

    def parse(self, raw: Optional[str]) -> FilterExpression:
        """
        Parse a raw filter expression.

        Args:
            raw: Expression text; None or blank means no filtering

        Returns:
            FilterExpression: Parsed expression (possibly empty)

        Raises:
            QueryValidationError: In strict mode, for any invalid clause
        """
        if raw is None or not raw.strip():
            return FilterExpression()

        text = raw.strip()
        and_at = text.find(";")
        or_at = text.find("|")

        if and_at >= 0 and or_at >= 0:
            if self.mixed_combinators is MixedCombinatorPolicy.REJECT:
                raise MixedCombinatorError(text)
            if self.mixed_combinators is MixedCombinatorPolicy.GROUPED:
                return self._parse_grouped(text)
            combinator = Combinator.AND if and_at < or_at else Combinator.OR
        elif or_at >= 0:
            combinator = Combinator.OR
        else:
            combinator = Combinator.AND

        clauses = self._parse_clauses(_split_parts(text, combinator.token))
        expression = FilterExpression(combinator=combinator, clauses=clauses)
        logger.debug("Parsed filter %r into %d clause(s)", text, len(clauses))
        return expression

    def _parse_grouped(self, text: str) -> FilterExpression:
        groups = []
        for group_text in _split_parts(text, Combinator.OR.token):
            clauses = self._parse_clauses(_split_parts(group_text, Combinator.AND.token))
            if clauses:
                groups.append(FilterExpression(combinator=Combinator.AND, clauses=clauses))
        expression = FilterExpression(combinator=Combinator.OR, groups=groups)
        logger.debug("Parsed grouped filter %r into %d group(s)", text, len(groups))
        return expression

    def _parse_clauses(self, parts: List[str]) -> List[FilterClause]:
        clauses = []
        for part in parts:
            try:
                clauses.append(self.parse_clause(part))
            except QueryValidationError as e:
                if self.strict_mode:
                    raise
                logger.warning("Ignoring filter clause %r: %s", part, e.detail)
        return clauses

    def parse_clause(self, text: str) -> FilterClause:
        """
        Parse one ``field<op>value`` clause.

        Always raises on invalid input; the caller decides whether to drop it.

        Raises:
            InvalidClauseError: Malformed clause or unsupported operator
            UnknownFieldError: Field not in the registry
            ValueCoercionError: Value not convertible to the field type
        """
        match = _CLAUSE_RE.match(text)
        if match is None or not match.group(3):
            raise InvalidClauseError(
                f"Malformed filter clause '{text}'. Expected field<op>value "
                "with op one of : = == != > >= < <=",
                value=text,
            )
        name, token, raw_value = match.groups()
        operator = FilterOperator.from_token(token)
        return self._build_clause(name, operator, raw_value)

    def _build_clause(self, name: str, operator: FilterOperator, raw_value: str) -> FilterClause:
        if self.registry is None:
            return FilterClause(field=name, operator=operator, value=raw_value, raw_value=raw_value)

        spec = self.registry.get(name)
        if spec is None or not spec.filterable:
            raise UnknownFieldError(name, self.registry.filterable_names())

        if operator not in _ALLOWED_OPERATORS.get(spec.type, _STRING_OPERATORS):
            raise InvalidClauseError(
                f"Operator '{operator.token}' is not supported for {spec.type} "
                f"field '{spec.name}'",
                field=spec.name,
                value=raw_value,
            )

        value = _coerce_value(spec, raw_value)
        return FilterClause(field=spec.name, operator=operator, value=value, raw_value=raw_value)

    def simple_clause(
        self, field: Optional[str], value: Optional[str]
    ) -> Optional[FilterClause]:
        """
        Build the implicit clause of the filterField/filterValue pair.

        String fields match by substring, or exactly when the value starts
        with ``=`` (the ``=`` is stripped). Other fields match by equality.

        Returns:
            Optional[FilterClause]: Clause, or None if either part is blank
            (or the clause was dropped in non-strict mode)
        """
        if not field or not field.strip() or value is None or not value.strip():
            return None

        value = value.strip()
        spec = self.registry.get(field) if self.registry is not None else None
        if value.startswith("="):
            operator, value = FilterOperator.EQ, value[1:].strip()
        elif spec is None or spec.type is FieldType.STRING:
            operator = FilterOperator.CONTAINS
        else:
            operator = FilterOperator.EQ
        if not value:
            return None

        try:
            return self._build_clause(field.strip(), operator, value)
        except QueryValidationError as e:
            if self.strict_mode:
                raise
            logger.warning("Ignoring simple filter %s=%r: %s", field, value, e.detail)
            return None


def parse_filter_expression(
    raw: Optional[str],
    registry: Optional[FieldRegistry] = None,
    strict_mode: bool = True,
    mixed_combinators: MixedCombinatorPolicy = MixedCombinatorPolicy.REJECT,
) -> FilterExpression:
    """
    Parse an advanced filter expression.

    Shortcut for ``FilterParser(...).parse(raw)``.
    """
    return FilterParser(
        registry, strict_mode=strict_mode, mixed_combinators=mixed_combinators
    ).parse(raw)


# Type alias for filter strategy functions
FilterStrategyFn = Callable[[ColumnElement[Any], Any, FieldSpec], Any]


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _is_text(spec: FieldSpec, value: Any) -> bool:
    return spec.type is FieldType.STRING and isinstance(value, str)


# --- Strategy functions for each filter operator ---


def _strategy_contains(column: ColumnElement[Any], value: Any, spec: FieldSpec) -> Any:
    pattern = f"%{_escape_like(str(value)).lower()}%"
    return func.lower(column).like(pattern, escape="\\")


def _strategy_eq(column: ColumnElement[Any], value: Any, spec: FieldSpec) -> Any:
    if _is_text(spec, value):
        return func.lower(column) == value.lower()
    return column == value


def _strategy_ne(column: ColumnElement[Any], value: Any, spec: FieldSpec) -> Any:
    if _is_text(spec, value):
        return func.lower(column) != value.lower()
    return column != value


def _strategy_gt(column: ColumnElement[Any], value: Any, spec: FieldSpec) -> Any:
    return column > value


def _strategy_gte(column: ColumnElement[Any], value: Any, spec: FieldSpec) -> Any:
    return column >= value


def _strategy_lt(column: ColumnElement[Any], value: Any, spec: FieldSpec) -> Any:
    return column < value


def _strategy_lte(column: ColumnElement[Any], value: Any, spec: FieldSpec) -> Any:
    return column <= value


# Strategy registry: maps FilterOperator -> handler function
FILTER_STRATEGIES: Dict[FilterOperator, FilterStrategyFn] = {
    FilterOperator.CONTAINS: _strategy_contains,
    FilterOperator.EQ: _strategy_eq,
    FilterOperator.NE: _strategy_ne,
    FilterOperator.GT: _strategy_gt,
    FilterOperator.GTE: _strategy_gte,
    FilterOperator.LT: _strategy_lt,
    FilterOperator.LTE: _strategy_lte,
}


class FilterEngine:
    """
    Engine for turning parsed filter expressions into SQL conditions.

    Uses the strategy pattern to dispatch by operator. Columns come from the
    ``FieldSpec`` of each clause, never from the request.
    """

    def __init__(self, registry: FieldRegistry):
        """
        Initialize FilterEngine.

        Args:
            registry: Fields (with bound columns) the clauses refer to
        """
        self.registry = registry

    def _column_for(self, clause: FilterClause) -> tuple:
        spec = self.registry.get(clause.field)
        if spec is None:
            # user input is validated by FilterParser; this is a server-side mistake
            raise ValueError(f"Field '{clause.field}' is not registered")
        if spec.column is None:
            raise ValueError(f"Field '{spec.name}' has no column bound")
        return spec.column, spec

    def build_clause_condition(self, clause: FilterClause) -> Any:
        """
        Build the SQL condition for a single clause.

        Raises:
            ValueError: If no strategy is registered or the field is unknown or has no column
        """
        column, spec = self._column_for(clause)
        strategy = FILTER_STRATEGIES.get(clause.operator)
        if strategy is None:
            raise ValueError(f"No filter strategy registered for '{clause.operator}'")
        return strategy(column, clause.value, spec)

    def build_condition(self, expression: FilterExpression) -> Optional[Any]:
        """
        Build the SQL condition for a whole expression.

        Returns:
            Optional[Any]: Condition, or None for an empty expression
        """
        conditions = [self.build_clause_condition(c) for c in expression.clauses]
        for group in expression.groups:
            condition = self.build_condition(group)
            if condition is not None:
                conditions.append(condition)
        if not conditions:
            return None
        if len(conditions) == 1:
            return conditions[0]
        if expression.combinator is Combinator.OR:
            return or_(*conditions)
        return and_(*conditions)

    def apply_filters(self, query: Select, expression: Optional[FilterExpression]) -> Select:
        """
        Apply an expression to a query.

        Args:
            query: Base SQLAlchemy Select query
            expression: Parsed filter expression

        Returns:
            Select: Query with the WHERE clause added
        """
        if expression is None or expression.is_empty:
            return query
        condition = self.build_condition(expression)
        if condition is None:
            return query
        return query.where(condition)

    def apply_clauses(self, query: Select, clauses: Optional[List[FilterClause]]) -> Select:
        """AND a list of clauses onto a query."""
        if not clauses:
            return query
        return query.where(*[self.build_clause_condition(c) for c in clauses])

    @staticmethod
    def register_strategy(operator: FilterOperator, strategy: FilterStrategyFn) -> None:
        """
        Register a custom filter strategy for an operator.

        Args:
            operator: The FilterOperator to register for
            strategy: A callable with signature (column, value, spec) -> condition

        Example:
            def accent_insensitive_contains(column, value, spec):
                return func.unaccent(column).ilike(f"%{value}%")

            FilterEngine.register_strategy(FilterOperator.CONTAINS, accent_insensitive_contains)
        """
        FILTER_STRATEGIES[operator] = strategy

"""Allow-list of filterable/sortable fields per entity."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum, StrEnum
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Type

from sqlalchemy import ColumnElement, Select, inspect


class FieldType(StrEnum):
    """Semantic type used for value coercion and operator checks."""

    STRING = "string"
    INTEGER = "integer"
    DECIMAL = "decimal"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATETIME = "datetime"
    DATE = "date"
    ENUM = "enum"

    @classmethod
    def from_python_type(cls, pytype: Optional[type]) -> "FieldType":
        """
        Map a column's python_type to a FieldType.

        Unknown types fall back to STRING.
        """
        if pytype is None:
            return cls.STRING
        # bool before int and datetime before date: both are subclasses
        if issubclass(pytype, bool):
            return cls.BOOLEAN
        if issubclass(pytype, Enum):
            return cls.ENUM
        if issubclass(pytype, int):
            return cls.INTEGER
        if issubclass(pytype, Decimal):
            return cls.DECIMAL
        if issubclass(pytype, float):
            return cls.FLOAT
        if issubclass(pytype, datetime):
            return cls.DATETIME
        if issubclass(pytype, date):
            return cls.DATE
        return cls.STRING


@dataclass(frozen=True)
class FieldSpec:
    """
    A permitted field and how to reach it.

    Attributes:
        name: Public field name used in query strings
        type: Semantic type of the field
        column: SQLAlchemy column expression (needed only to build SQL)
        enum_type: Enum class for ENUM fields
        sortable: Whether the field may be used in sortField
        filterable: Whether the field may be used in filters
    """

    name: str
    type: FieldType = FieldType.STRING
    column: Optional[Any] = None
    enum_type: Optional[Type[Enum]] = None
    sortable: bool = True
    filterable: bool = True


def _column_python_type(column: Any) -> Optional[type]:
    try:
        return getattr(column.type, "python_type", None)
    except (AttributeError, NotImplementedError):
        return None


def _spec_for_column(name: str, column: Any) -> FieldSpec:
    pytype = _column_python_type(column)
    field_type = FieldType.from_python_type(pytype)
    enum_type = None
    if field_type is FieldType.ENUM:
        enum_type = pytype
    return FieldSpec(name=name, type=field_type, column=column, enum_type=enum_type)


class FieldRegistry:
    """
    Case-insensitive mapping from public field name to FieldSpec.

    Only fields registered here can be filtered or sorted on, so a request
    can never reach a column the endpoint did not expose.

    Example:
        registry = FieldRegistry.from_model(Usuario, exclude=["password_hash"])
        registry.add(FieldSpec("Profesor.Nombre", FieldType.STRING, Profesor.nombre))
    """

    def __init__(self, fields: Optional[Iterable[FieldSpec]] = None):
        self._fields: Dict[str, FieldSpec] = {}
        for spec in fields or ():
            self.add(spec)

    def add(self, spec: FieldSpec) -> "FieldRegistry":
        """
        Register a field.

        Raises:
            ValueError: If a field with the same name (ignoring case) exists
        """
        key = spec.name.lower()
        if key in self._fields:
            raise ValueError(f"Field '{spec.name}' is already registered")
        self._fields[key] = spec
        return self

    def get(self, name: Optional[str]) -> Optional[FieldSpec]:
        """Look up a field by name, ignoring case."""
        if not name:
            return None
        return self._fields.get(name.strip().lower())

    def names(self) -> List[str]:
        return [spec.name for spec in self._fields.values()]

    def sortable_names(self) -> List[str]:
        return [spec.name for spec in self._fields.values() if spec.sortable]

    def filterable_names(self) -> List[str]:
        return [spec.name for spec in self._fields.values() if spec.filterable]

    def with_fallback(self, other: "FieldRegistry") -> "FieldRegistry":
        """Copy of this registry plus the fields of ``other`` it does not define."""
        merged = FieldRegistry(self)
        for spec in other:
            if spec.name not in merged:
                merged.add(spec)
        return merged

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None

    def __iter__(self) -> Iterator[FieldSpec]:
        return iter(self._fields.values())

    def __len__(self) -> int:
        return len(self._fields)

    @classmethod
    def from_columns(
        cls,
        columns: Mapping[str, ColumnElement[Any]],
        include: Optional[Iterable[str]] = None,
        exclude: Optional[Iterable[str]] = None,
        aliases: Optional[Mapping[str, str]] = None,
    ) -> "FieldRegistry":
        """
        Build a registry from a name -> column mapping.

        Args:
            columns: Column collection (e.g. ``select(Model).selected_columns``)
            include: If given, only these column names are registered
            exclude: Column names never registered
            aliases: Extra public name -> column name entries

        Returns:
            FieldRegistry: New registry
        """
        include_set = {n.lower() for n in include} if include is not None else None
        exclude_set = {n.lower() for n in exclude or ()}
        registry = cls()
        for name in columns.keys():
            key = name.lower()
            if key in exclude_set:
                continue
            if include_set is not None and key not in include_set:
                continue
            registry.add(_spec_for_column(name, columns[name]))
        for alias, target in (aliases or {}).items():
            if target.lower() in exclude_set:
                raise ValueError(f"Alias '{alias}' points to excluded column '{target}'")
            column = columns.get(target)
            if column is None:
                raise ValueError(f"Alias '{alias}' points to unknown column '{target}'")
            registry.add(_spec_for_column(alias, column))
        return registry

    @classmethod
    def from_model(
        cls,
        model: Type[Any],
        include: Optional[Iterable[str]] = None,
        exclude: Optional[Iterable[str]] = None,
        aliases: Optional[Mapping[str, str]] = None,
    ) -> "FieldRegistry":
        """
        Build a registry from a mapped SQLModel/SQLAlchemy class.

        Columns are bound as ORM attributes so the registry works with
        ``select(Model)`` queries.
        """
        mapper = inspect(model)
        columns = {attr.key: getattr(model, attr.key) for attr in mapper.column_attrs}
        return cls.from_columns(columns, include=include, exclude=exclude, aliases=aliases)

    @classmethod
    def from_query(
        cls,
        query: Select,
        include: Optional[Iterable[str]] = None,
        exclude: Optional[Iterable[str]] = None,
    ) -> "FieldRegistry":
        """Build a registry from the selected columns of a query."""
        columns = query.selected_columns
        return cls.from_columns(
            {key: columns[key] for key in columns.keys()}, include=include, exclude=exclude
        )

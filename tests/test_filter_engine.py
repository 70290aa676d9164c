"""Tests for FilterEngine with strategy pattern."""

from datetime import datetime
from typing import Optional

import pytest
from school_query.builder import FilterBuilder
from school_query.fields import FieldRegistry, FieldSpec, FieldType
from school_query.filters import FILTER_STRATEGIES, FilterEngine, FilterParser
from school_query.models import FilterClause, FilterExpression, FilterOperator
from sqlalchemy import StaticPool
from sqlmodel import Field, Session, SQLModel, create_engine, select


class FilterTestModel(SQLModel, table=True):
    """Test model for filter engine tests."""

    __tablename__ = "filter_test_model"

    id: Optional[int] = Field(default=None, primary_key=True)
    nombre: str = Field(default="")
    valor: float = Field(default=0)
    fecha: Optional[datetime] = Field(default=None)
    activo: bool = Field(default=True)


@pytest.fixture(scope="module")
def engine():
    eng = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    SQLModel.metadata.create_all(eng)
    with Session(eng) as session:
        session.add_all(
            [
                FilterTestModel(nombre="Juan Pérez", valor=10.5, fecha=datetime(2023, 1, 1)),
                FilterTestModel(nombre="María García", valor=25.0, fecha=datetime(2023, 2, 1)),
                FilterTestModel(nombre="Carlos López", valor=15.75, fecha=datetime(2023, 3, 1)),
                FilterTestModel(nombre="Ana Martín", valor=30.25, fecha=datetime(2023, 4, 1)),
                FilterTestModel(
                    nombre="Luis 50%_off", valor=5.5, fecha=datetime(2023, 5, 1), activo=False
                ),
            ]
        )
        session.commit()
    return eng


@pytest.fixture(scope="module")
def registry():
    return FieldRegistry.from_model(FilterTestModel)


@pytest.fixture
def filter_engine(registry):
    return FilterEngine(registry)


def run(engine, registry, raw, **parser_kwargs):
    """Parse, apply and execute a filter; return the matching names."""
    expression = FilterParser(registry, **parser_kwargs).parse(raw)
    query = FilterEngine(registry).apply_filters(select(FilterTestModel), expression)
    with Session(engine) as session:
        return sorted(row.nombre for row in session.exec(query).all())


class TestStrategyRegistry:
    """Tests for the FILTER_STRATEGIES registry."""

    def test_all_operators_registered(self):
        for op in FilterOperator:
            assert op in FILTER_STRATEGIES, f"Missing strategy for {op}"

    def test_strategies_are_callable(self):
        for op, strategy in FILTER_STRATEGIES.items():
            assert callable(strategy), f"Strategy for {op} is not callable"


class TestConditionBuilding:
    """Tests for the compiled SQL of single clauses."""

    def test_eq_number(self, filter_engine):
        clause = FilterClause(field="valor", operator=FilterOperator.EQ, value=10.5)
        condition = filter_engine.build_clause_condition(clause)
        assert str(condition) == "filter_test_model.valor = :valor_1"

    def test_eq_string_is_case_insensitive(self, filter_engine):
        clause = FilterClause(field="nombre", operator=FilterOperator.EQ, value="Juan")
        compiled = str(filter_engine.build_clause_condition(clause)).lower()
        assert "lower(filter_test_model.nombre)" in compiled

    def test_contains_uses_like_with_escape(self, filter_engine):
        clause = FilterClause(field="nombre", operator=FilterOperator.CONTAINS, value="an")
        compiled = str(filter_engine.build_clause_condition(clause)).upper()
        assert "LIKE" in compiled
        assert "ESCAPE" in compiled

    @pytest.mark.parametrize(
        "operator, sql",
        [
            (FilterOperator.GT, ">"),
            (FilterOperator.GTE, ">="),
            (FilterOperator.LT, "<"),
            (FilterOperator.LTE, "<="),
        ],
    )
    def test_ordering_operators(self, filter_engine, operator, sql):
        clause = FilterClause(field="valor", operator=operator, value=1)
        assert f"valor {sql} " in str(filter_engine.build_clause_condition(clause))

    def test_ne_number(self, filter_engine):
        clause = FilterClause(field="valor", operator=FilterOperator.NE, value=1)
        compiled = str(filter_engine.build_clause_condition(clause))
        assert "!=" in compiled or "<>" in compiled

    def test_field_without_column_is_programming_error(self):
        engine = FilterEngine(FieldRegistry([FieldSpec("Nombre", FieldType.STRING)]))
        clause = FilterClause(field="Nombre", operator=FilterOperator.EQ, value="x")
        with pytest.raises(ValueError, match="no column bound"):
            engine.build_clause_condition(clause)

    def test_unregistered_field_is_programming_error(self, filter_engine):
        clause = FilterClause(field="apellido", operator=FilterOperator.EQ, value="x")
        with pytest.raises(ValueError, match="not registered"):
            filter_engine.build_clause_condition(clause)

    def test_empty_expression_leaves_query_untouched(self, filter_engine):
        query = select(FilterTestModel)
        result = filter_engine.apply_filters(query, FilterExpression())
        assert "WHERE" not in str(result)

    def test_none_expression_leaves_query_untouched(self, filter_engine):
        query = select(FilterTestModel)
        assert "WHERE" not in str(filter_engine.apply_filters(query, None))


class TestExecution:
    """Filters executed against SQLite."""

    def test_simple_contains(self, engine, registry):
        assert run(engine, registry, "Nombre:juan") == ["Juan Pérez"]

    def test_exact_match_ignores_case(self, engine, registry):
        assert run(engine, registry, "nombre=ana martín") == ["Ana Martín"]

    def test_not_equals(self, engine, registry):
        assert "Ana Martín" not in run(engine, registry, "nombre!=Ana Martín")

    def test_or(self, engine, registry):
        assert run(engine, registry, "Nombre:Juan|Nombre:María") == ["Juan Pérez", "María García"]

    def test_and(self, engine, registry):
        assert run(engine, registry, "Nombre:ar;Valor<20") == ["Carlos López"]

    def test_numeric_comparison(self, engine, registry):
        assert run(engine, registry, "Valor>=15") == ["Ana Martín", "Carlos López", "María García"]

    def test_date_comparison(self, engine, registry):
        assert run(engine, registry, "Fecha>2023-03-15") == ["Ana Martín", "Luis 50%_off"]

    def test_boolean(self, engine, registry):
        assert run(engine, registry, "activo=false") == ["Luis 50%_off"]

    def test_like_wildcards_are_literal(self, engine, registry):
        assert run(engine, registry, "Nombre:%") == ["Luis 50%_off"]
        assert run(engine, registry, "Nombre:_") == ["Luis 50%_off"]

    def test_grouped_or_of_and_groups(self, engine, registry):
        names = run(engine, registry, "Nombre:Juan;Valor>5|Nombre:Ana", mixed_combinators="grouped")
        assert names == ["Ana Martín", "Juan Pérez"]

    def test_no_filter_returns_everything(self, engine, registry):
        assert len(run(engine, registry, "")) == 5


class TestApplyClauses:
    def test_clauses_are_anded(self, engine, registry):
        clauses = FilterBuilder().where("valor").gt(10).where("activo").eq(True).clauses()
        query = FilterEngine(registry).apply_clauses(select(FilterTestModel), clauses)
        with Session(engine) as session:
            assert len(session.exec(query).all()) == 4

    def test_no_clauses(self, registry):
        query = select(FilterTestModel)
        assert FilterEngine(registry).apply_clauses(query, []) is query


class TestCustomStrategy:
    def test_register_strategy_overrides_operator(self, filter_engine):
        original = FILTER_STRATEGIES[FilterOperator.EQ]
        try:
            FilterEngine.register_strategy(
                FilterOperator.EQ, lambda column, value, spec: column.is_(None)
            )
            clause = FilterClause(field="fecha", operator=FilterOperator.EQ, value=None)
            assert "IS NULL" in str(filter_engine.build_clause_condition(clause)).upper()
        finally:
            FilterEngine.register_strategy(FilterOperator.EQ, original)

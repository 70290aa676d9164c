import pytest
from fastapi import Response
from fastapi.testclient import TestClient
from sqlalchemy import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from school_query.manager import QueryManager, RawQueryParams
from tests.main import Estudiante, Nota, Profesor, app, get_session


@pytest.fixture(name="session")
def session_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session
    engine.dispose()


@pytest.fixture(name="client")
def client_fixture(session: Session):
    def get_session_override():
        return session

    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="school")
def school_fixture(session: Session):
    """Five students, two professors and their grades."""
    estudiantes = [
        Estudiante(nombre="Juan Pérez"),
        Estudiante(nombre="María García"),
        Estudiante(nombre="Carlos López"),
        Estudiante(nombre="Ana Martín"),
        Estudiante(nombre="Luis González"),
        Estudiante(nombre="Juana Borrada", is_deleted=True),
    ]
    profesores = [Profesor(nombre="Marta Ríos"), Profesor(nombre="Pedro Sanz")]
    session.add_all(estudiantes + profesores)
    session.commit()

    valores = [10.5, 25.0, 15.75, 30.25, 5.5]
    notas = [
        Nota(
            nombre=f"Parcial {i + 1}",
            valor=valor,
            id_profesor=profesores[i % 2].id,
            id_estudiante=estudiantes[i].id,
        )
        for i, valor in enumerate(valores)
    ]
    session.add_all(notas)
    session.commit()
    return {"estudiantes": estudiantes, "profesores": profesores, "notas": notas}


@pytest.fixture(name="make_manager")
def make_manager_fixture():
    """Build a QueryManager outside a request from query-string values."""

    def make(**overrides):
        values = {
            "page": None,
            "page_size": None,
            "filter_field": None,
            "filter_value": None,
            "filter": None,
            "sort_field": None,
            "sort_desc": False,
        }
        values.update(overrides)
        return QueryManager(Response(), RawQueryParams(**values))

    return make

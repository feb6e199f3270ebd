import os
import uuid

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import app.models  # noqa: E402,F401
from app.db import Base  # noqa: E402
from app.models.person import Person  # noqa: E402
from app.schemas.ecm import DocumentCreate  # noqa: E402
from app.services.ecm_document import documents  # noqa: E402


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def db_session(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()


def _make_person(db_session, first_name="Test", last_name="Person", **overrides):
    person = Person(
        first_name=first_name,
        last_name=last_name,
        email=f"person-{uuid.uuid4().hex[:10]}@example.com",
        **overrides,
    )
    db_session.add(person)
    db_session.commit()
    db_session.refresh(person)
    return person


@pytest.fixture()
def person_factory(db_session):
    def _factory(first_name="Test", last_name="Person", **overrides):
        return _make_person(db_session, first_name, last_name, **overrides)

    return _factory


@pytest.fixture()
def person(db_session):
    return _make_person(db_session, "Ada", "Owner")


@pytest.fixture()
def other_person(db_session):
    return _make_person(db_session, "Ben", "Collaborator")


@pytest.fixture()
def document(db_session, person):
    return documents.create(
        db_session,
        person.id,
        DocumentCreate(title="Quarterly report draft", content="hello world"),
    )


@pytest.fixture()
def client(db_session):
    from app.api.deps import get_db
    from app.main import app

    def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers(person):
    return {"X-Person-Id": str(person.id)}

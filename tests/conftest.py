"""
Pytest configuration and fixtures for Data Alchemist tests.
"""

import io
import os

# Settings are read at import time; keep tests off the default database file
os.environ.setdefault('DATABASE_URL', 'sqlite://')

import openpyxl
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from api.dependencies import get_db
from api.main import app
from backend.models.schema import Base
from services.session_service import SessionService


@pytest.fixture
def engine():
    """Create a fresh in-memory database per test."""
    eng = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(eng)
    yield eng
    Base.metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def session(session_factory):
    """Create a new database session for a test."""
    sess = session_factory()
    yield sess
    sess.close()


@pytest.fixture
def service(session):
    """Upload session service with a small history limit."""
    return SessionService(db_session=session, history_limit=10)


@pytest.fixture
def client(session_factory):
    """API client whose requests use the test database."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def clients_csv():
    """CSV upload with one valid row and one row per built-in error."""
    return (
        "ClientID,PriorityLevel,AttributesJSON,Name\n"
        "C1,3,\"{\"\"tier\"\": \"\"gold\"\"}\",Acme\n"
        "C2,9,{},Globex\n"
        "C1,2,,Initech\n"
        ",1,{not json},Umbrella\n"
        "\n"
        "C5,5,\"[1, 2]\",Hooli\n"
    ).encode('utf-8')


@pytest.fixture
def renamed_csv():
    """CSV upload whose columns do not use the target names."""
    return (
        "id,prio,attrs\n"
        "A-1,1,{}\n"
        "A-2,4,{\"x\": 1}\n"
    ).encode('utf-8')


def build_xlsx(rows):
    """Build an XLSX workbook in memory from a list of row lists."""
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.title = 'Clients'
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def clients_xlsx():
    """XLSX upload with numeric cells and an empty row."""
    return build_xlsx([
        ['ClientID', 'PriorityLevel', 'AttributesJSON'],
        ['X1', 2, '{"a": 1}'],
        [None, None, None],
        ['X2', 7.0, None],
        [101, 5, 'oops'],
    ])


@pytest.fixture
def xlsx_builder():
    """Expose build_xlsx to tests."""
    return build_xlsx

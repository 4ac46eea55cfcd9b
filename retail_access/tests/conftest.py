"""
Root test configuration and fixtures.

Provides database fixtures that can be used by all tests, plus the MADNEZZ
scenario used throughout the service and platform tests:

    MADNEZZ (organization)
    └── C  (company)
        ├── R1 (regional)
        │   └── S1 (store)
        └── R2 (regional)
            └── S2 (store)
"""

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Generator

import pytest
import yaml
from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from retail_access.config.access_policy import AccessPolicyLoader, CONFIG_ENV_VAR
from retail_access.constants.hierarchy import DepartmentType, OrganizationUnitType, PositionLevel

# Set test environment
os.environ.setdefault("ENV", "test")


def _get_test_database_url() -> str:
    """Get database URL for tests."""
    database_url = os.getenv("DATABASE_URL")

    if database_url:
        if database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql://", 1)
        return database_url

    # Default to SQLite for unit tests if no PostgreSQL available
    return "sqlite:///:memory:"


def _is_postgres() -> bool:
    """Check if using PostgreSQL."""
    url = _get_test_database_url()
    return url.startswith("postgresql")


@pytest.fixture(scope="session")
def db_engine():
    """
    Create database engine for tests.

    Uses PostgreSQL if DATABASE_URL is set, otherwise SQLite in-memory with
    foreign keys enforced (cascade deletes are part of the model).
    """
    database_url = _get_test_database_url()

    if _is_postgres():
        try:
            engine = create_engine(database_url, pool_pre_ping=True)
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as e:
            pytest.skip(
                f"PostgreSQL not available. Set DATABASE_URL or use SQLite. Error: {e}"
            )
    else:
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    # Import and create all tables
    from retail_access.db_base import Base
    import retail_access.models  # noqa: F401 - registers every table

    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """
    Create a database session and wipe every table afterwards.

    Tables are emptied rather than rolled back because some tests exercise
    transaction(), which commits.
    """
    from retail_access.db_base import Base

    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()

    yield session

    session.rollback()
    session.close()
    with db_engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(scope="session", autouse=True)
def _packaged_access_policy():
    """The run starts from the packaged access_policy.yml."""
    os.environ.pop(CONFIG_ENV_VAR, None)
    AccessPolicyLoader.reset()
    yield
    AccessPolicyLoader.reset()


@pytest.fixture
def reset_access_policy(monkeypatch):
    """
    Drop the cached policy before and after a test that loads its own.

    Function-scoped and opt-in so hypothesis tests stay free of
    function-scoped fixtures.
    """
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    AccessPolicyLoader.reset()
    yield
    AccessPolicyLoader.reset()


# =============================================================================
# Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "security: mark test as security-focused")
    config.addinivalue_line("markers", "slow: mark test as slow-running")


# =============================================================================
# Shared Config Fixtures
# =============================================================================


@pytest.fixture
def temp_config_dir():
    """Create a temporary directory for YAML config files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def make_yaml_config(temp_config_dir):
    """
    Factory fixture that writes a YAML config file and returns its path.

    Usage:
        config_path = make_yaml_config("access_policy.yml", {"max_traversal_depth": 4})
    """
    def _make(filename: str, config: dict) -> Path:
        config_path = temp_config_dir / filename
        with open(config_path, "w") as f:
            yaml.dump(config, f)
        return config_path
    return _make


# =============================================================================
# MADNEZZ scenario
# =============================================================================


@dataclass
class MadnezzScenario:
    organization: object
    company: object
    r1: object
    r2: object
    s1: object
    s2: object
    departments: dict
    master: object
    go: object
    gr: object
    store_manager: object
    go_position: object
    gr_position: object
    sm_position: object


def _add(session, *entities):
    for entity in entities:
        session.add(entity)
    session.flush()


@pytest.fixture
def madnezz(db_session) -> MadnezzScenario:
    """
    MADNEZZ organization with users at every level.

    - go: GO at C (all departments)
    - gr: GR at R1 (operations, trade)
    - store_manager: STORE_MANAGER at S1 (administrative, operations)
    - master: native MASTER
    """
    from retail_access.models import (
        Department, HierarchicalUser, Organization, OrganizationUnit, Position,
    )

    organization = Organization.create("Madnezz", "MADNEZZ")
    _add(db_session, organization)

    org_id = organization.id
    company = OrganizationUnit.create(org_id, "Madnezz HQ", "MADNEZZ", OrganizationUnitType.COMPANY)
    _add(db_session, company)
    r1 = OrganizationUnit.create(org_id, "Region North", "R1", OrganizationUnitType.REGIONAL, parent=company)
    r2 = OrganizationUnit.create(org_id, "Region South", "R2", OrganizationUnitType.REGIONAL, parent=company)
    _add(db_session, r1, r2)
    s1 = OrganizationUnit.create(org_id, "Store One", "S1", OrganizationUnitType.STORE, parent=r1)
    s2 = OrganizationUnit.create(org_id, "Store Two", "S2", OrganizationUnitType.STORE, parent=r2)
    _add(db_session, s1, s2)

    departments = {t: Department.create(org_id, t) for t in DepartmentType}
    _add(db_session, *departments.values())

    master = HierarchicalUser.create_master("Root Master", "master@madnezz.com", "hash-master")
    go = HierarchicalUser.create_go("Gina Operator", "go@madnezz.com", "hash-go", org_id)
    gr = HierarchicalUser.create_gr("Rui Regional", "gr@madnezz.com", "hash-gr", org_id)
    store_manager = HierarchicalUser.create_store_manager(
        "Sam Store", "sm@madnezz.com", "hash-sm", org_id, s1.id
    )
    _add(db_session, master, go, gr, store_manager)

    go_position = Position.create(
        company, go.id, PositionLevel.GO, "General Operator", departments.values()
    )
    gr_position = Position.create(
        r1, gr.id, PositionLevel.GR, "Regional Manager",
        [departments[DepartmentType.OPERATIONS], departments[DepartmentType.TRADE]],
    )
    sm_position = Position.create(
        s1, store_manager.id, PositionLevel.STORE_MANAGER, "Store Manager",
        [departments[DepartmentType.ADMINISTRATIVE], departments[DepartmentType.OPERATIONS]],
    )
    _add(db_session, go_position, gr_position, sm_position)

    return MadnezzScenario(
        organization=organization,
        company=company,
        r1=r1,
        r2=r2,
        s1=s1,
        s2=s2,
        departments=departments,
        master=master,
        go=go,
        gr=gr,
        store_manager=store_manager,
        go_position=go_position,
        gr_position=gr_position,
        sm_position=sm_position,
    )


@pytest.fixture
def other_organization(db_session):
    """A second tenant (ACME) with a company, one region and one store."""
    from retail_access.models import Organization, OrganizationUnit

    organization = Organization.create("Acme", "ACME")
    _add(db_session, organization)
    company = OrganizationUnit.create(organization.id, "Acme HQ", "ACME", OrganizationUnitType.COMPANY)
    _add(db_session, company)
    region = OrganizationUnit.create(organization.id, "Acme East", "RE", OrganizationUnitType.REGIONAL, parent=company)
    _add(db_session, region)
    store = OrganizationUnit.create(organization.id, "Acme Store", "AS1", OrganizationUnitType.STORE, parent=region)
    _add(db_session, store)
    return {"organization": organization, "company": company, "region": region, "store": store}

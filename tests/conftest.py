"""
Pytest fixtures for the test suite.

Data-layer tests use an in-memory SQLite engine and a session that rolls back
after each test, so tests do not affect each other. API tests run the FastAPI
app against that same session through dependency overrides.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool


TEST_DB_URL = "sqlite:///:memory:"
CONFIG_PATH = Path(__file__).resolve().parents[1] / "config" / "security_config.yaml"
TEST_PASSWORD = "Password123!"


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    return create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    from emp_accounts.db.base import Base
    from emp_accounts.models import security, tenancy  # noqa: F401

    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(tables):
    """
    Provide a Session bound to the test DB; roll back after each test.

    Service code calls commit(); those commits stay inside the outer
    transaction, which is rolled back so the next test gets a clean state.
    """
    connection = tables.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        class_=Session,
    )
    session = TestSession()
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def security_config():
    from emp_accounts.security.config import load_security_config

    return load_security_config(CONFIG_PATH)


@pytest.fixture
def settings():
    from emp_accounts.settings import Settings

    return Settings(
        db_url=TEST_DB_URL,
        jwt_secret="test-secret-0123456789abcdef0123456789abcdef",
        bcrypt_rounds=4,
        seed_demo_data=False,
    )


@dataclass
class World:
    """Two companies with departments and one account per role."""

    roles: dict = field(default_factory=dict)
    departments: dict = field(default_factory=dict)
    accounts: dict = field(default_factory=dict)


@pytest.fixture
def world(db_session, security_config, settings):
    """
    ACME: Engineering (admin, manager, ed), Finance (fran), a platform super admin.
    OTHERCO: Operations (oscar the admin, olive).
    """
    from emp_accounts.db.init_db import seed_reference_data
    from emp_accounts.models.tenancy import Account, Department
    from emp_accounts.security.passwords import hash_password

    data = World()
    data.roles = seed_reference_data(db_session, security_config)
    password_hash = hash_password(TEST_PASSWORD, settings.bcrypt_rounds)

    for key, comp_code, name in [
        ("eng", "ACME", "Engineering"),
        ("fin", "ACME", "Finance"),
        ("ops", "OTHERCO", "Operations"),
    ]:
        department = Department(comp_code=comp_code, department_name=name)
        db_session.add(department)
        data.departments[key] = department
    db_session.flush()

    for key, comp_code, emp_id, dept, role_name in [
        ("admin", "ACME", "ACME-001", "eng", "ADMIN"),
        ("manager", "ACME", "ACME-002", "eng", "MANAGER"),
        ("ed", "ACME", "ACME-003", "eng", "EMPLOYEE"),
        ("fran", "ACME", "ACME-004", "fin", "EMPLOYEE"),
        ("root", "ACME", "ROOT-001", None, "SUPER_ADMIN"),
        ("oscar", "OTHERCO", "OTH-001", "ops", "ADMIN"),
        ("olive", "OTHERCO", "OTH-002", "ops", "EMPLOYEE"),
    ]:
        account = Account(
            comp_code=comp_code,
            emp_id=emp_id,
            fullname=key.capitalize(),
            username=key,
            email=f"{key}@{comp_code.lower()}.example.com",
            password_hash=password_hash,
            department_id=data.departments[dept].department_id if dept else None,
            role_id=data.roles[role_name].id,
            status="active",
        )
        db_session.add(account)
        data.accounts[key] = account

    db_session.commit()
    return data


@pytest.fixture
def app(db_session, security_config, settings):
    from emp_accounts.db.session import get_db
    from emp_accounts.main import create_app
    from emp_accounts.settings import get_settings

    application = create_app()
    application.state.security_config = security_config

    def override_get_db():
        yield db_session

    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_settings] = lambda: settings
    return application


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    # Not used as a context manager: lifespan (file DB + seeding) stays off.
    return TestClient(app)


@pytest.fixture
def token_for(world, settings):
    """Return a function building a bearer header for a seeded account key."""
    from emp_accounts.security.tokens import issue_session_token

    def build(key: str) -> dict[str, str]:
        account = world.accounts[key]
        token = issue_session_token(
            account_id=str(account.id),
            emp_id=account.emp_id,
            comp_code=account.comp_code,
            role_name="IGNORED",
            fullname=account.fullname,
            settings=settings,
        )
        return {"Authorization": f"Bearer {token}"}

    return build

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from emp_accounts.db.base import Base
from emp_accounts.db.session import SessionLocal, engine
from emp_accounts.models.security import Role, UserType
from emp_accounts.models.tenancy import Account, Department
from emp_accounts.security.config import SecurityConfig
from emp_accounts.security.passwords import hash_password
from emp_accounts.settings import Settings

logger = logging.getLogger(__name__)

DEMO_PASSWORD = "Password123!"

# comp_code -> departments -> (emp_id, fullname, username, role)
DEMO_TENANTS = {
    "ACME": {
        "Engineering": [
            ("ACME-001", "Alice Admin", "alice", "ADMIN"),
            ("ACME-002", "Mona Manager", "mona", "MANAGER"),
            ("ACME-003", "Ed Engineer", "ed", "EMPLOYEE"),
        ],
        "Finance": [
            ("ACME-004", "Fran Finance", "fran", "EMPLOYEE"),
        ],
    },
    "OTHERCO": {
        "Operations": [
            ("OTH-001", "Oscar Owner", "oscar", "ADMIN"),
            ("OTH-002", "Olive Operator", "olive", "EMPLOYEE"),
        ],
    },
}

PLATFORM_COMP_CODE = "ACME"
PLATFORM_ACCOUNT = ("ROOT-001", "Sam Super", "root")


def init_db(config: SecurityConfig, settings: Settings) -> None:
    """
    Create tables, make sure the global roles and user types from the security
    config exist, and seed the demo companies on an empty database.
    """

    Base.metadata.create_all(bind=engine)

    with SessionLocal() as db:
        seed_reference_data(db, config)
        if settings.seed_demo_data and not _has_seed_data(db):
            _seed_demo_tenants(db, config, settings.bcrypt_rounds)
        db.commit()


def seed_reference_data(db: Session, config: SecurityConfig) -> dict[str, Role]:
    """Insert missing roles and user types. Existing role rows are left as edited."""

    roles = {role.role_name: role for role in db.scalars(select(Role))}
    for name, seed in config.model.roles.items():
        if name not in roles:
            role = Role(role_name=name, description=seed.description, permissions=list(seed.permissions))
            db.add(role)
            roles[name] = role

    existing_types = set(db.scalars(select(UserType.type_name)))
    for type_name in config.model.user_types:
        if type_name not in existing_types:
            db.add(UserType(type_name=type_name))

    db.flush()
    logger.info("Reference data ensured roles=%d user_types=%d", len(roles), len(config.model.user_types))
    return roles


def _has_seed_data(db: Session) -> bool:
    return db.execute(select(Account.id).limit(1)).first() is not None


def _seed_demo_tenants(db: Session, config: SecurityConfig, rounds: int) -> None:
    roles = {role.role_name: role for role in db.scalars(select(Role))}
    internal = db.scalars(select(UserType).where(UserType.type_name == "INTERNAL")).first()
    password_hash = hash_password(DEMO_PASSWORD, rounds)

    def add_account(comp_code, emp_id, fullname, username, role_name, department=None):
        role = roles.get(role_name)
        db.add(
            Account(
                comp_code=comp_code,
                emp_id=emp_id,
                fullname=fullname,
                username=username,
                email=f"{username}@{comp_code.lower()}.example.com",
                password_hash=password_hash,
                department_id=department.department_id if department else None,
                user_type_id=internal.id if internal else None,
                role_id=role.id if role else None,
                status="active",
            )
        )

    for comp_code, departments in DEMO_TENANTS.items():
        for department_name, members in departments.items():
            department = Department(
                comp_code=comp_code,
                department_name=department_name,
                description=f"{department_name} ({comp_code})",
            )
            db.add(department)
            db.flush()
            for emp_id, fullname, username, role_name in members:
                add_account(comp_code, emp_id, fullname, username, role_name, department)

    emp_id, fullname, username = PLATFORM_ACCOUNT
    add_account(PLATFORM_COMP_CODE, emp_id, fullname, username, config.policy.elevated_role)

    db.flush()
    logger.info("Seeded demo companies: %s", ", ".join(DEMO_TENANTS))

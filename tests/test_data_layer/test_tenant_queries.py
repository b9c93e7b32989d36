"""
Tests for tenant-scoped query building.

Uses db_session/world fixtures: in-memory SQLite, rolled back after each test.
"""
from __future__ import annotations

import pytest
from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import aliased

from emp_accounts.db.tenant import (
    TENANT_PARAM,
    inject_tenant_predicate,
    scoped_insert,
    scoped_read,
    scoped_write,
)
from emp_accounts.errors import TenantRequired
from emp_accounts.models.tenancy import Account, Department


def test_inject_conjoins_existing_where():
    sql = inject_tenant_predicate("SELECT * FROM accounts WHERE status = :status ORDER BY emp_id")
    assert sql == (
        f"SELECT * FROM accounts WHERE comp_code = :{TENANT_PARAM} AND (status = :status) ORDER BY emp_id"
    )


def test_inject_places_where_before_trailing_clause():
    sql = inject_tenant_predicate("SELECT status, COUNT(*) FROM accounts GROUP BY status")
    assert sql == f"SELECT status, COUNT(*) FROM accounts WHERE comp_code = :{TENANT_PARAM} GROUP BY status"


def test_inject_appends_when_no_clauses():
    assert inject_tenant_predicate("SELECT * FROM accounts;") == (
        f"SELECT * FROM accounts WHERE comp_code = :{TENANT_PARAM}"
    )


def test_inject_parenthesises_or_filters():
    sql = inject_tenant_predicate("SELECT * FROM accounts WHERE status = 'active' OR status = 'disabled' LIMIT 5")
    assert "AND (status = 'active' OR status = 'disabled') LIMIT 5" in sql


def test_inject_is_case_insensitive():
    sql = inject_tenant_predicate("select * from accounts where status = 'active' order by emp_id")
    assert sql.startswith(f"select * from accounts WHERE comp_code = :{TENANT_PARAM} AND (status = 'active')")


SUBQUERY_SQL = (
    "SELECT emp_id FROM accounts WHERE status = 'active' "
    "AND id IN (SELECT id FROM accounts GROUP BY id) ORDER BY emp_id"
)
LITERAL_SQL = "SELECT emp_id FROM accounts WHERE fullname <> 'waiting for approval' ORDER BY emp_id"


def test_inject_skips_clauses_inside_subqueries():
    assert inject_tenant_predicate(SUBQUERY_SQL) == (
        f"SELECT emp_id FROM accounts WHERE comp_code = :{TENANT_PARAM} AND "
        "(status = 'active' AND id IN (SELECT id FROM accounts GROUP BY id)) ORDER BY emp_id"
    )


def test_inject_skips_keywords_inside_string_literals():
    assert inject_tenant_predicate(LITERAL_SQL) == (
        f"SELECT emp_id FROM accounts WHERE comp_code = :{TENANT_PARAM} AND "
        "(fullname <> 'waiting for approval') ORDER BY emp_id"
    )


def test_inject_ignores_where_inside_derived_table():
    sql = inject_tenant_predicate(
        "SELECT emp_id FROM (SELECT emp_id, comp_code FROM accounts WHERE status = 'active') AS a ORDER BY emp_id"
    )
    assert sql == (
        "SELECT emp_id FROM (SELECT emp_id, comp_code FROM accounts WHERE status = 'active') AS a "
        f"WHERE comp_code = :{TENANT_PARAM} ORDER BY emp_id"
    )


def test_inject_handles_escaped_quotes():
    sql = inject_tenant_predicate("SELECT * FROM accounts WHERE fullname = 'it''s (for) me' LIMIT 1")
    assert sql.endswith("AND (fullname = 'it''s (for) me') LIMIT 1")


def test_inject_unbalanced_sql_is_not_grouped():
    sql = inject_tenant_predicate("SELECT * FROM accounts WHERE fullname = 'open ORDER BY emp_id")
    assert sql == f"SELECT * FROM accounts WHERE comp_code = :{TENANT_PARAM} AND fullname = 'open ORDER BY emp_id"


def test_scoped_read_only_returns_tenant_rows(db_session, world):
    acme = scoped_read(db_session, select(Account.emp_id), "ACME").scalars().all()
    other = scoped_read(db_session, select(Account.emp_id), "OTHERCO").scalars().all()

    assert set(acme) == {"ACME-001", "ACME-002", "ACME-003", "ACME-004", "ROOT-001"}
    assert set(other) == {"OTH-001", "OTH-002"}


def test_scoped_read_keeps_existing_criteria(db_session, world):
    stmt = select(Account.emp_id).where(Account.department_id == world.departments["eng"].department_id)
    rows = scoped_read(db_session, stmt, "ACME").scalars().all()
    assert set(rows) == {"ACME-001", "ACME-002", "ACME-003"}


def test_scoped_read_other_tenant_sees_nothing(db_session, world):
    stmt = select(Account).where(Account.emp_id == "ACME-003")
    assert scoped_read(db_session, stmt, "OTHERCO").first() is None


def test_scoped_read_without_tenant_spans_companies(db_session, world):
    count = scoped_read(db_session, select(func.count(Account.id)), None).scalar_one()
    assert count == 7


def test_scoped_read_rejects_empty_tenant(db_session, world):
    with pytest.raises(TenantRequired):
        scoped_read(db_session, select(Account), "")


def test_scoped_read_filters_joined_tenant_tables(db_session, world):
    stmt = (
        select(Department.department_name, func.count(Account.id))
        .join(Account, Account.department_id == Department.department_id)
        .group_by(Department.department_name)
        .order_by(Department.department_name)
    )
    rows = scoped_read(db_session, stmt, "ACME").all()
    assert [tuple(row) for row in rows] == [("Engineering", 3), ("Finance", 1)]


def test_scoped_read_filters_aliases(db_session, world):
    other = aliased(Account)
    stmt = select(other.emp_id).where(other.status == "active")
    rows = scoped_read(db_session, stmt, "OTHERCO").scalars().all()
    assert set(rows) == {"OTH-001", "OTH-002"}


def test_scoped_read_raw_sql_binds_tenant(db_session, world):
    result = scoped_read(
        db_session,
        "SELECT emp_id FROM accounts WHERE status = :status OR emp_id = :emp_id ORDER BY emp_id",
        "OTHERCO",
        {"status": "active", "emp_id": "ACME-001"},
    )
    assert [row.emp_id for row in result] == ["OTH-001", "OTH-002"]


@pytest.mark.parametrize("sql", [SUBQUERY_SQL, LITERAL_SQL])
def test_scoped_read_raw_sql_with_nested_clauses(db_session, world, sql):
    result = scoped_read(db_session, sql, "OTHERCO")
    assert [row.emp_id for row in result] == ["OTH-001", "OTH-002"]


def test_scoped_write_does_not_touch_other_tenants(db_session, world):
    stmt = update(Account).where(Account.emp_id == "ACME-003").values(status="disabled")
    scoped_write(db_session, stmt, "OTHERCO")
    db_session.commit()

    ed = scoped_read(db_session, select(Account).where(Account.emp_id == "ACME-003"), "ACME").scalar_one()
    assert ed.status == "active"


def test_scoped_write_delete_is_confined(db_session, world):
    result = scoped_write(
        db_session,
        delete(Account).where(Account.emp_id == "OTH-002").returning(Account.id),
        "ACME",
    )
    assert result.first() is None
    db_session.commit()

    assert scoped_read(db_session, select(Account.id).where(Account.emp_id == "OTH-002"), "OTHERCO").first()


def test_scoped_insert_sets_tenant_column(db_session, world):
    department = scoped_insert(db_session, Department, {"department_name": "Legal"}, "OTHERCO")
    db_session.commit()

    assert department.comp_code == "OTHERCO"
    assert scoped_read(
        db_session, select(Department).where(Department.department_name == "Legal"), "ACME"
    ).first() is None


def test_scoped_insert_tenant_overrides_field_map(db_session, world):
    row = scoped_insert(
        db_session,
        Department,
        {"department_name": "Sneaky", "comp_code": "OTHERCO"},
        "ACME",
        returning=["department_id", "comp_code"],
    )
    assert row["comp_code"] == "ACME"


@pytest.mark.parametrize("tenant", [None, ""])
def test_scoped_insert_requires_tenant(db_session, tenant):
    with pytest.raises(TenantRequired):
        scoped_insert(db_session, Department, {"department_name": "X"}, tenant)

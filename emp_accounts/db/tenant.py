"""
Tenant-scoped query building.

Every read or write against a tenant-scoped table goes through this module so
that company isolation is a property of the query layer, not of each caller:

    scoped_read(db, select(Account).where(Account.status == "active"), "ACME")

attaches ``accounts.comp_code = :param`` to the statement. ``tenant_code=None``
is the cross-company sentinel and leaves the statement untouched; it must only
ever come from the elevated role's tenant context.

Two statement forms are accepted:

* ORM statements (``select``/``update``/``delete`` on mapped classes). The
  predicate is attached with ``with_loader_criteria`` on the ``TenantScoped``
  mixin, so it is AND-ed with existing criteria, rendered before any
  GROUP BY / ORDER BY / LIMIT by the compiler, and added to the ON clause of
  joined or aliased tenant tables.
* Raw SQL strings, for reporting queries. These go through
  ``inject_tenant_predicate`` which performs the textual placement.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import Result, insert, text
from sqlalchemy.orm import Session, with_loader_criteria
from sqlalchemy.sql import Executable

from emp_accounts.errors import TenantRequired
from emp_accounts.models.tenancy import TENANT_COLUMN, TenantScoped

logger = logging.getLogger(__name__)

TENANT_PARAM = "tenant_scope_comp_code"

_TRAILING_SEMICOLONS_RE = re.compile(r";+\s*$")
_WHERE_RE = re.compile(r"\s(WHERE)\s", re.IGNORECASE)
_TAIL_CLAUSE_RE = re.compile(r"\s+(ORDER|LIMIT|GROUP|HAVING|FOR|RETURNING)\s", re.IGNORECASE)


def _require_tenant(tenant_code: str | None) -> None:
    # None is the bypass sentinel; any other falsy value is a caller bug.
    if tenant_code is not None and not tenant_code:
        raise TenantRequired()


def _top_level_mask(statement: str) -> list[bool] | None:
    """
    One flag per character: True when it sits outside every quoted literal and
    parenthesis. None when the quotes or parentheses do not balance.
    """

    mask: list[bool] = []
    depth = 0
    quote: str | None = None
    for char in statement:
        if quote is not None:
            # A doubled quote closes and reopens, which reads '' escapes correctly.
            if char == quote:
                quote = None
            mask.append(False)
            continue
        if char in ("'", '"'):
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                return None
        mask.append(depth == 0 and quote is None and char not in "()")
    if quote is not None or depth != 0:
        return None
    return mask


def _first_top_level(
    pattern: re.Pattern[str], statement: str, mask: list[bool], pos: int = 0
) -> re.Match[str] | None:
    for match in pattern.finditer(statement, pos):
        if mask[match.start(1)]:
            return match
    return None


def _inject_unparenthesised(statement: str, condition: str) -> str:
    where = _WHERE_RE.search(statement)
    if where is not None:
        return f"{statement[: where.start()]} WHERE {condition} AND {statement[where.end():]}"
    tail = _TAIL_CLAUSE_RE.search(statement)
    if tail is not None:
        return f"{statement[: tail.start()]} WHERE {condition}{statement[tail.start():]}"
    return f"{statement} WHERE {condition}"


def inject_tenant_predicate(sql: str, param_name: str = TENANT_PARAM) -> str:
    """
    Add ``comp_code = :param_name`` to a raw SQL statement.

    Placement:
    1) an existing WHERE clause is conjoined: ``WHERE <tenant> AND (<existing>)``;
    2) otherwise the clause goes before the first ORDER/LIMIT/GROUP/HAVING/FOR/RETURNING;
    3) otherwise it is appended at the end.

    Only keywords outside subqueries and quoted literals count, so a GROUP BY
    inside ``IN (SELECT ...)`` or the word "for" inside a string does not end
    the existing filter early. The existing filter is parenthesised so that an
    OR inside it cannot widen the result past the tenant predicate.

    When the quotes or parentheses do not balance there is no reliable end to
    the filter; the first WHERE is then conjoined without parentheses
    (``WHERE <tenant> AND <existing>``).
    """

    statement = _TRAILING_SEMICOLONS_RE.sub("", sql.strip())
    condition = f"{TENANT_COLUMN} = :{param_name}"

    mask = _top_level_mask(statement)
    if mask is None:
        logger.warning("Unbalanced raw SQL, tenant predicate added without grouping")
        return _inject_unparenthesised(statement, condition)

    where = _first_top_level(_WHERE_RE, statement, mask)
    if where is not None:
        body_start = where.end()
        tail = _first_top_level(_TAIL_CLAUSE_RE, statement, mask, body_start)
        body_end = tail.start() if tail is not None else len(statement)
        existing = statement[body_start:body_end].strip()
        return f"{statement[: where.start()]} WHERE {condition} AND ({existing}){statement[body_end:]}"

    tail = _first_top_level(_TAIL_CLAUSE_RE, statement, mask)
    if tail is not None:
        return f"{statement[: tail.start()]} WHERE {condition}{statement[tail.start():]}"

    return f"{statement} WHERE {condition}"


def with_tenant_scope(statement: Executable, tenant_code: str) -> Executable:
    """Return `statement` with tenant isolation criteria attached (ORM statements)."""

    return statement.options(
        with_loader_criteria(
            TenantScoped,
            lambda cls: cls.comp_code == tenant_code,
            include_aliases=True,
        )
    )


def scoped_read(
    db: Session,
    statement: Executable | str,
    tenant_code: str | None,
    params: Mapping[str, Any] | None = None,
) -> Result:
    """
    Execute a read against tenant-scoped tables.

    `params` are the statement's own bound parameters (raw SQL only); the tenant
    code is always added as one more bound parameter, never as literal text.
    """

    _require_tenant(tenant_code)

    if isinstance(statement, str):
        bound = dict(params or {})
        if tenant_code is None:
            logger.debug("Scoped raw read without tenant filter (elevated)")
            return db.execute(text(_TRAILING_SEMICOLONS_RE.sub("", statement.strip())), bound)

        bound[TENANT_PARAM] = tenant_code
        logger.debug("Scoped raw read tenant=%s", tenant_code)
        return db.execute(text(inject_tenant_predicate(statement)), bound)

    if tenant_code is None:
        logger.debug("Scoped read without tenant filter (elevated)")
        return db.execute(statement, params)

    logger.debug("Scoped read tenant=%s", tenant_code)
    return db.execute(with_tenant_scope(statement, tenant_code), params)


def scoped_write(db: Session, statement: Executable, tenant_code: str | None) -> Result:
    """Execute an ORM UPDATE/DELETE restricted to the tenant's rows."""

    _require_tenant(tenant_code)

    if tenant_code is None:
        logger.debug("Scoped write without tenant filter (elevated)")
        return db.execute(statement)

    logger.debug("Scoped write tenant=%s", tenant_code)
    return db.execute(with_tenant_scope(statement, tenant_code))


def scoped_insert(
    db: Session,
    model: type[TenantScoped],
    fields: Mapping[str, Any],
    tenant_code: str | None,
    returning: Sequence[str] | None = None,
) -> Any:
    """
    Insert one row owned by `tenant_code`.

    Returns the mapped instance, or a dict of the `returning` columns when a
    projection is requested. Inserts have no bypass: a tenant is always required.
    """

    if not tenant_code:
        raise TenantRequired()

    values = {**fields, TENANT_COLUMN: tenant_code}
    stmt = insert(model).values(**values)
    logger.debug("Scoped insert table=%s tenant=%s", model.__tablename__, tenant_code)

    if returning is None:
        return db.execute(stmt.returning(model)).scalar_one()

    columns = [getattr(model, name) for name in returning]
    row = db.execute(stmt.returning(*columns)).one()
    return dict(row._mapping)

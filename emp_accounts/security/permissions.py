"""
Permission tokens.

Stored role permissions are plain strings of the form ``resource:action`` with
an optional scope suffix. They are parsed once, when the principal is bound,
into ``PermissionToken`` values so the resolver never re-parses strings.

Recognised spellings::

    accounts:read               unscoped (whole company)
    accounts:read:own           own record only
    accounts:read_own           own record only (spelling used by stored roles)
    accounts:read:own-dept      own department only

Anything else is unrecognised and never grants access.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

_OWN_ACTION_SUFFIX = "_own"


class Scope(str, Enum):
    UNSCOPED = "unscoped"
    OWN = "own"
    OWN_DEPT = "own-dept"


_SUFFIX_SCOPES = {
    Scope.OWN.value: Scope.OWN,
    Scope.OWN_DEPT.value: Scope.OWN_DEPT,
}

# Narrowest first; a grant at one rank also covers every lower rank.
_SCOPE_RANK = {Scope.OWN: 0, Scope.OWN_DEPT: 1, Scope.UNSCOPED: 2}


@dataclass(frozen=True)
class PermissionToken:
    resource: str
    action: str
    scope: Scope
    raw: str

    @classmethod
    def parse(cls, raw: str) -> PermissionToken | None:
        """Parse a token string; returns None for anything unrecognised."""

        if not isinstance(raw, str):
            return None

        parts = raw.strip().split(":")
        if any(not part for part in parts):
            return None

        if len(parts) == 2:
            resource, action = parts
            if action.endswith(_OWN_ACTION_SUFFIX) and len(action) > len(_OWN_ACTION_SUFFIX):
                return cls(resource, action[: -len(_OWN_ACTION_SUFFIX)], Scope.OWN, raw.strip())
            return cls(resource, action, Scope.UNSCOPED, raw.strip())

        if len(parts) == 3:
            resource, action, suffix = parts
            scope = _SUFFIX_SCOPES.get(suffix)
            if scope is None:
                return None
            return cls(resource, action, scope, raw.strip())

        return None

    @property
    def key(self) -> tuple[str, str, Scope]:
        return (self.resource, self.action, self.scope)


@dataclass(frozen=True)
class PermissionSet:
    """
    A role's parsed permissions.

    `raw` keeps the recognised strings for exact textual matching; `scoped`
    indexes the same tokens by (resource, action, scope) for scope widening.
    """

    raw: frozenset[str]
    scoped: frozenset[tuple[str, str, Scope]]

    @classmethod
    def from_strings(cls, tokens: Iterable[str] | None) -> PermissionSet:
        raw: set[str] = set()
        scoped: set[tuple[str, str, Scope]] = set()
        for value in tokens or ():
            token = PermissionToken.parse(value)
            if token is None:
                logger.warning("Ignoring unrecognised permission token %r", value)
                continue
            raw.add(token.raw)
            scoped.add(token.key)
        return cls(raw=frozenset(raw), scoped=frozenset(scoped))

    def has_exact(self, token: PermissionToken) -> bool:
        return token.raw in self.raw

    def grants(self, resource: str, action: str, scope: Scope) -> bool:
        return (resource, action, scope) in self.scoped

    def covers(self, other: PermissionSet) -> bool:
        """
        True when every grant in `other` is held here at the same or a wider scope.

        `accounts:read:own-dept` covers `accounts:read_own` but not `accounts:read`.
        """

        for resource, action, scope in other.scoped:
            if not any(
                (resource, action, held) in self.scoped
                for held, rank in _SCOPE_RANK.items()
                if rank >= _SCOPE_RANK[scope]
            ):
                return False
        return True

    def __len__(self) -> int:
        return len(self.raw)

"""Authorization rules for cars and user accounts.

Every function here is a pure decision over already loaded entities; the
caller performs the store mutation after an ``ALLOW``. The authenticated
identity is passed in explicitly as a :class:`Caller`.

Record visibility is expressed as a :class:`RecordScope`. Admins get an
:class:`AdminScope` that accepts everything, other users an
:class:`OwnerScope` that accepts only their own records. List and
statistics queries are narrowed with ``scope.apply``; single records are
checked with ``scope.permits``.
"""

from dataclasses import dataclass
from enum import Enum

from .errors import ForbiddenError, NotFoundError


class Decision(str, Enum):
    ALLOW = "allow"
    DENY_NOT_FOUND = "deny_not_found"
    DENY_FORBIDDEN = "deny_forbidden"


@dataclass(frozen=True)
class Caller:
    """Identity of the user making the current request."""

    id: int
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @classmethod
    def from_user(cls, user) -> "Caller":
        """
        Build a caller from a User ORM model.

        Args:
            user (User): Authenticated user.

        Returns:
            Caller: Request identity.
        """
        return cls(id=user.id, role=user.role)


class RecordScope:
    """Predicate restricting the records a caller may see or act on."""

    def permits(self, record) -> bool:
        raise NotImplementedError

    def apply(self, stmt, owner_column):
        """Narrow a SQLAlchemy select to the records this scope accepts."""
        raise NotImplementedError


class AdminScope(RecordScope):
    def permits(self, record) -> bool:
        return True

    def apply(self, stmt, owner_column):
        return stmt

    def __repr__(self):
        return "AdminScope()"


@dataclass(frozen=True)
class OwnerScope(RecordScope):
    user_id: int

    def permits(self, record) -> bool:
        return record.user_id == self.user_id

    def apply(self, stmt, owner_column):
        return stmt.where(owner_column == self.user_id)


def scope_for(caller: Caller) -> RecordScope:
    """Full visibility for admins, own records for everybody else."""
    if caller.is_admin:
        return AdminScope()
    return OwnerScope(caller.id)


def own_records(caller: Caller) -> OwnerScope:
    """Scope limited to the caller's records regardless of role.

    Used by search, status filtering and bulk status updates, which never
    cross ownership boundaries, not even for admins.
    """
    return OwnerScope(caller.id)


def car_access(caller: Caller, car) -> Decision:
    """Decide whether ``caller`` may read, update or delete ``car``.

    Foreign cars are reported as missing so that their existence is not
    revealed.
    """
    if scope_for(caller).permits(car):
        return Decision.ALLOW
    return Decision.DENY_NOT_FOUND


def user_management(caller: Caller) -> Decision:
    if caller.is_admin:
        return Decision.ALLOW
    return Decision.DENY_FORBIDDEN


def user_deletion(caller: Caller, target) -> Decision:
    """Admins may delete any account except their own."""
    if not caller.is_admin or target.id == caller.id:
        return Decision.DENY_FORBIDDEN
    return Decision.ALLOW


def enforce(
    decision: Decision,
    not_found_detail: str = "Not found",
    forbidden_detail: str = "Forbidden",
) -> None:
    """
    Turn a denial into the matching HTTP error.

    Args:
        decision (Decision): Result of a policy function.
        not_found_detail (str): Message used for ``DENY_NOT_FOUND``.
        forbidden_detail (str): Message used for ``DENY_FORBIDDEN``.

    Raises:
        NotFoundError: For ``DENY_NOT_FOUND``.
        ForbiddenError: For ``DENY_FORBIDDEN``.
    """
    if decision is Decision.DENY_NOT_FOUND:
        raise NotFoundError(not_found_detail)
    if decision is Decision.DENY_FORBIDDEN:
        raise ForbiddenError(forbidden_detail)

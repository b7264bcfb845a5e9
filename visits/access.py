"""
Role based visibility of patient records.

Each role sees the slice of patients that belongs to its stage of the
visit.  The same rule is expressed twice: as a ``Q`` object for list
queries and as a Python predicate for re-checking a single record after
it has been fetched.  Both are derived from :data:`VISIBILITY`, so the
list and detail endpoints cannot drift apart.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from django.db.models import Q

from .exceptions import Forbidden
from .workflow import Role, Status, has_text

# Matches any value holding a non-whitespace character; NULL never matches
_NON_BLANK = r'\S'


@dataclass(frozen=True)
class Principal:
    """The authenticated caller as seen by the workflow."""
    id: int
    username: str
    role: str

    @classmethod
    def from_user(cls, user) -> 'Principal':
        return cls(id=user.pk, username=user.get_username(), role=getattr(user, 'role', '') or '')


@dataclass(frozen=True)
class Visibility:
    # None means every status
    statuses: Optional[frozenset]
    requires_nurse_note: bool = False


VISIBILITY: dict[str, Visibility] = {
    Role.REGISTRAR: Visibility(statuses=None),
    Role.ADMIN: Visibility(statuses=None),
    Role.NURSE: Visibility(statuses=frozenset({Status.REGISTERED})),
    Role.DOCTOR: Visibility(statuses=frozenset({Status.AWAITING_DOCTOR}), requires_nurse_note=True),
    Role.PHARMACIST: Visibility(statuses=frozenset({Status.AWAITING_MEDICATION})),
}

# Oldest registration first; id breaks ties between identical timestamps
LIST_ORDERING = ('registered_at', 'id')


def _visibility(role: Optional[str]) -> Visibility:
    rule = VISIBILITY.get(role or '')
    if rule is None:
        raise Forbidden('Invalid role')
    return rule


def ensure_role(role: Optional[str], allowed: Iterable[str]) -> None:
    if role not in set(allowed):
        raise Forbidden('Access denied')


def visibility_filter(role: Optional[str]) -> Q:
    """Return the list query predicate for ``role``."""
    rule = _visibility(role)
    q = Q()
    if rule.statuses is not None:
        q &= Q(status__in=sorted(rule.statuses))
    if rule.requires_nurse_note:
        q &= Q(nurse_note__regex=_NON_BLANK)
    return q


def can_view(role: Optional[str], patient) -> bool:
    rule = VISIBILITY.get(role or '')
    if rule is None:
        return False
    if rule.statuses is not None and patient.status not in rule.statuses:
        return False
    if rule.requires_nurse_note and not has_text(patient.nurse_note):
        return False
    return True


def ensure_can_view(role: Optional[str], patient) -> None:
    """Re-validate a fetched record against the caller's stage."""
    rule = _visibility(role)
    if can_view(role, patient):
        return
    if rule.requires_nurse_note and patient.status == Status.AWAITING_DOCTOR:
        raise Forbidden('Access denied - Patient needs nurse notes first')
    raise Forbidden('Access denied')

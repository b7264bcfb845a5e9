"""
Patient visit workflow.

A visit moves through four statuses::

    registered -> awaiting_doctor -> awaiting_medication -> completed

and a doctor may reopen a visit that already has a doctor note
(reconsultation), which puts it back to ``awaiting_medication``.

This module holds the transition table and the guard checks only.  It
never touches the database: the functions accept any object exposing
``status``, ``nurse_note`` and ``doctor_note`` attributes, so the same
rules apply to model instances and to plain stand-ins in tests.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .exceptions import Forbidden, PreconditionFailed


class Status:
    REGISTERED = 'registered'
    AWAITING_DOCTOR = 'awaiting_doctor'
    AWAITING_MEDICATION = 'awaiting_medication'
    COMPLETED = 'completed'

    CHOICES = [
        (REGISTERED, 'Registered'),
        (AWAITING_DOCTOR, 'Awaiting doctor'),
        (AWAITING_MEDICATION, 'Awaiting medication'),
        (COMPLETED, 'Completed'),
    ]
    ALL = frozenset(value for value, _ in CHOICES)


class Role:
    REGISTRAR = 'registrar'
    NURSE = 'nurse'
    DOCTOR = 'doctor'
    PHARMACIST = 'pharmacist'
    ADMIN = 'admin'

    CHOICES = [
        (REGISTRAR, 'Registrar'),
        (NURSE, 'Nurse'),
        (DOCTOR, 'Doctor'),
        (PHARMACIST, 'Pharmacist'),
        (ADMIN, 'Administrator'),
    ]
    ALL = frozenset(value for value, _ in CHOICES)


# Action names
REGISTER = 'register'
ADD_NURSE_NOTE = 'add_nurse_note'
ADD_DOCTOR_NOTE = 'add_doctor_note'
DISPENSE_MEDICATION = 'dispense_medication'
RECONSULT = 'reconsult'
EDIT_REGISTRATION = 'edit_registration'


@dataclass(frozen=True)
class Transition:
    """One row of the workflow table.

    ``from_statuses`` is ``None`` for the action that creates a record;
    ``to_status`` is ``None`` when the action leaves the status alone.
    """
    action: str
    roles: frozenset
    from_statuses: Optional[frozenset]
    to_status: Optional[str]
    timestamp_field: str
    status_message: str = ''
    requires_nurse_note: bool = False
    requires_doctor_note: bool = False


TRANSITIONS: dict[str, Transition] = {
    REGISTER: Transition(
        action=REGISTER,
        roles=frozenset({Role.REGISTRAR, Role.ADMIN}),
        from_statuses=None,
        to_status=Status.REGISTERED,
        timestamp_field='registered_at',
    ),
    ADD_NURSE_NOTE: Transition(
        action=ADD_NURSE_NOTE,
        roles=frozenset({Role.NURSE, Role.ADMIN}),
        from_statuses=frozenset({Status.REGISTERED}),
        to_status=Status.AWAITING_DOCTOR,
        timestamp_field='notes_taken_at',
        status_message='Can only add notes to patients with registered status',
    ),
    ADD_DOCTOR_NOTE: Transition(
        action=ADD_DOCTOR_NOTE,
        roles=frozenset({Role.DOCTOR, Role.ADMIN}),
        from_statuses=frozenset({Status.AWAITING_DOCTOR}),
        to_status=Status.AWAITING_MEDICATION,
        timestamp_field='doctor_reviewed_at',
        status_message='Can only add a doctor note to patients awaiting the doctor',
        requires_nurse_note=True,
    ),
    DISPENSE_MEDICATION: Transition(
        action=DISPENSE_MEDICATION,
        roles=frozenset({Role.PHARMACIST, Role.ADMIN}),
        from_statuses=frozenset({Status.AWAITING_MEDICATION}),
        to_status=Status.COMPLETED,
        timestamp_field='medication_dispensed_at',
        status_message='Can only add medication to patients awaiting medication',
        requires_doctor_note=True,
    ),
    RECONSULT: Transition(
        action=RECONSULT,
        roles=frozenset({Role.DOCTOR, Role.ADMIN}),
        from_statuses=Status.ALL,
        to_status=Status.AWAITING_MEDICATION,
        timestamp_field='doctor_reviewed_at',
        requires_doctor_note=True,
    ),
    EDIT_REGISTRATION: Transition(
        action=EDIT_REGISTRATION,
        roles=frozenset({Role.REGISTRAR, Role.ADMIN}),
        from_statuses=Status.ALL,
        to_status=None,
        timestamp_field='last_edited_at',
    ),
}


def has_text(value) -> bool:
    """True when ``value`` holds something other than whitespace."""
    return bool(value and str(value).strip())


def _has_doctor_note(note) -> bool:
    return bool(note) and any(has_text(note.get(k)) for k in ('diagnosis', 'instructions'))


def get_transition(action: str) -> Transition:
    """Return the table row for ``action``; unknown actions raise ``KeyError``."""
    return TRANSITIONS[action]


def ensure_role(action: str, role: Optional[str]) -> None:
    """Raise :class:`Forbidden` unless ``role`` may perform ``action``."""
    transition = get_transition(action)
    if role not in transition.roles:
        allowed = '/'.join(sorted(transition.roles))
        raise Forbidden(f'Only {allowed} users may perform {action}')


def check_preconditions(action: str, patient) -> None:
    """Raise :class:`PreconditionFailed` when a guard of ``action`` does not hold."""
    transition = get_transition(action)
    if transition.from_statuses is None:
        raise PreconditionFailed(f'{action} creates a new record and cannot target an existing one')
    if patient.status not in transition.from_statuses:
        raise PreconditionFailed(
            transition.status_message or f'{action} is not allowed in status {patient.status}'
        )
    if transition.requires_nurse_note and not has_text(patient.nurse_note):
        raise PreconditionFailed('Patient needs nurse notes first')
    if transition.requires_doctor_note and not _has_doctor_note(patient.doctor_note):
        raise PreconditionFailed('Patient has no doctor note yet')


def can_apply(action: str, role: Optional[str], patient) -> bool:
    try:
        ensure_role(action, role)
        check_preconditions(action, patient)
    except (Forbidden, PreconditionFailed):
        return False
    return True


def allowed_actions(role: Optional[str], patient) -> list[str]:
    """Actions ``role`` could apply to ``patient`` right now, in table order."""
    return [
        action for action, transition in TRANSITIONS.items()
        if transition.from_statuses is not None and can_apply(action, role, patient)
    ]


def next_status(action: str, current: Optional[str]) -> str:
    transition = get_transition(action)
    return transition.to_status or current

"""
Patient record store and workflow actions.

The store functions (``create``, ``get``, ``find_by_phone``,
``list_patients``, ``update``) are the only code that reads or writes
:class:`~visits.models.Patient` rows.  The workflow actions below them
compose role check, fetch, guard check and a conditional update inside a
single transaction and record a :class:`~visits.models.PatientTransition`
for every accepted action.

Writes are conditioned on the statuses the action is valid from: if
another request moved the patient out of them in the meantime the update
matches no row and the action fails with
:class:`~visits.exceptions.PreconditionFailed` instead of overwriting the
newer state.  Actions valid in every status (registration edits,
reconsultation) are not disturbed by unrelated progress.
"""
from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Iterable, Optional, Union

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.db.models import Q, QuerySet
from django.utils import timezone

from visits import access, workflow
from visits.access import Principal
from visits.exceptions import Conflict, NotFound, PreconditionFailed, ValidationError
from visits.models import Patient, PatientTransition
from visits.workflow import Status

logger = logging.getLogger(__name__)

PHONE_TAKEN = 'A patient with this phone number already exists'

IDENTITY_FIELDS = ('first_name', 'last_name', 'date_of_birth', 'phone_number', 'address', 'gender')

TEXT_FIELDS = ('first_name', 'last_name', 'phone_number', 'address', 'gender')


def _validate_identity(fields: dict) -> dict:
    """Trim text fields and run the model field validators over ``fields``."""
    cleaned, errors = {}, {}
    for name, value in fields.items():
        if name in TEXT_FIELDS:
            value = (value or '').strip()
        try:
            cleaned[name] = Patient._meta.get_field(name).clean(value, None)
        except DjangoValidationError as e:
            errors[name] = e.messages
    if errors:
        raise ValidationError(errors)
    return cleaned


def _required_text(**values) -> dict:
    cleaned = {name: (value or '').strip() for name, value in values.items()}
    missing = {name: ['This field may not be blank.'] for name, value in cleaned.items() if not value}
    if missing:
        raise ValidationError(missing)
    return cleaned


def calculate_age(date_of_birth: date, today: Optional[date] = None) -> int:
    """Whole years between ``date_of_birth`` and ``today``."""
    today = today or timezone.localdate()
    years = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        years -= 1
    return max(years, 0)


# ---------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------
def get(patient_id) -> Patient:
    patient = Patient.objects.filter(pk=patient_id).first()
    if patient is None:
        raise NotFound('Patient not found')
    return patient


def find_by_phone(phone_number: str) -> Optional[Patient]:
    return Patient.objects.filter(phone_number=phone_number).first()


def list_patients(q: Optional[Q] = None, order_by: Iterable[str] = access.LIST_ORDERING) -> QuerySet:
    qs = Patient.objects.all()
    if q is not None:
        qs = qs.filter(q)
    return qs.order_by(*order_by)


def create(draft: dict) -> Patient:
    """Insert a new patient; a duplicate phone number raises :class:`Conflict`."""
    if find_by_phone(draft['phone_number']) is not None:
        raise Conflict(PHONE_TAKEN)
    try:
        with transaction.atomic():
            return Patient.objects.create(**draft)
    except IntegrityError:
        # Lost a race against a concurrent registration with the same phone
        raise Conflict(PHONE_TAKEN)


def update(patient_id, fields: dict, expected_statuses: Optional[Iterable[str]] = None) -> Patient:
    """Apply ``fields`` to one patient in a single UPDATE statement.

    With ``expected_statuses`` the row is only written while its status
    is still one of them.
    """
    qs = Patient.objects.filter(pk=patient_id)
    if expected_statuses is not None:
        qs = qs.filter(status__in=list(expected_statuses))
    try:
        with transaction.atomic():
            updated = qs.update(**fields)
    except IntegrityError:
        raise Conflict(PHONE_TAKEN)
    if not updated:
        current = get(patient_id)
        raise PreconditionFailed(
            f'Patient status changed to {current.status} by another request; reload and retry'
        )
    return get(patient_id)


# ---------------------------------------------------------------------
# Workflow actions
# ---------------------------------------------------------------------
def _record(patient: Patient, action: str, from_status: Optional[str], principal: Principal) -> None:
    PatientTransition.objects.create(
        patient=patient,
        action=action,
        from_status=from_status,
        to_status=patient.status,
        operator_id=principal.id,
    )


def _apply(
    action: str,
    principal: Principal,
    patient_id,
    changes: Union[dict, Callable[[Patient], dict]],
) -> Patient:
    transition = workflow.get_transition(action)
    with transaction.atomic():
        patient = get(patient_id)
        try:
            workflow.check_preconditions(action, patient)
        except PreconditionFailed as exc:
            logger.warning('patient %s: %s rejected for %s: %s', patient.pk, action, principal.username, exc.detail)
            raise
        fields = changes(patient) if callable(changes) else dict(changes)
        if transition.to_status:
            fields['status'] = transition.to_status
        fields[transition.timestamp_field] = timezone.now()
        updated = update(patient.pk, fields, expected_statuses=transition.from_statuses)
        from_status = patient.status if transition.to_status else updated.status
        _record(updated, action, from_status, principal)
    logger.info('patient %s: %s -> %s by %s (%s)', updated.pk, from_status, updated.status, principal.username, action)
    return updated


def register_patient(principal: Principal, data: dict) -> Patient:
    """Create a patient in ``registered`` status."""
    workflow.ensure_role(workflow.REGISTER, principal.role)
    draft = _validate_identity({field: data.get(field) for field in IDENTITY_FIELDS})
    draft['age'] = calculate_age(draft['date_of_birth'])
    draft['status'] = Status.REGISTERED
    draft['registered_at'] = timezone.now()
    with transaction.atomic():
        try:
            patient = create(draft)
        except Conflict:
            logger.warning('registration by %s rejected: duplicate phone number', principal.username)
            raise
        _record(patient, workflow.REGISTER, None, principal)
    logger.info('patient %s: registered by %s', patient.pk, principal.username)
    return patient


def add_nurse_note(principal: Principal, patient_id, notes: str) -> Patient:
    workflow.ensure_role(workflow.ADD_NURSE_NOTE, principal.role)
    fields = _required_text(nurse_note=notes)
    return _apply(workflow.ADD_NURSE_NOTE, principal, patient_id, fields)


def add_doctor_note(principal: Principal, patient_id, diagnosis: str, instructions: str) -> Patient:
    workflow.ensure_role(workflow.ADD_DOCTOR_NOTE, principal.role)
    note = _required_text(diagnosis=diagnosis, instructions=instructions)
    return _apply(workflow.ADD_DOCTOR_NOTE, principal, patient_id, {'doctor_note': note})


def dispense_medication(principal: Principal, patient_id, drugs: list, dosage: str, duration: str) -> Patient:
    workflow.ensure_role(workflow.DISPENSE_MEDICATION, principal.role)
    drugs = [(d or '').strip() for d in drugs or ()]
    if not drugs or not all(drugs):
        raise ValidationError({'drugs': ['Please provide at least one drug in the drugs array']})
    note = {'drugs': drugs, **_required_text(dosage=dosage, duration=duration)}
    return _apply(workflow.DISPENSE_MEDICATION, principal, patient_id, {'pharmacist_note': note})


def reconsult(principal: Principal, patient_id, diagnosis: str, instructions: str) -> Patient:
    workflow.ensure_role(workflow.RECONSULT, principal.role)
    note = _required_text(diagnosis=diagnosis, instructions=instructions)
    return _apply(workflow.RECONSULT, principal, patient_id, {'doctor_note': note})


def edit_registration(principal: Principal, patient_id, data: dict) -> Patient:
    """Overwrite identity fields; status and ``registered_at`` are left alone."""
    workflow.ensure_role(workflow.EDIT_REGISTRATION, principal.role)
    fields = _validate_identity({field: data[field] for field in IDENTITY_FIELDS if field in data})

    def changes(patient: Patient) -> dict:
        phone = fields.get('phone_number')
        if phone and phone != patient.phone_number:
            if Patient.objects.filter(phone_number=phone).exclude(pk=patient.pk).exists():
                raise Conflict(PHONE_TAKEN)
        return dict(fields, age=calculate_age(fields.get('date_of_birth') or patient.date_of_birth))

    return _apply(workflow.EDIT_REGISTRATION, principal, patient_id, changes)


# ---------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------
def list_visible(principal: Principal, status: Optional[str] = None) -> QuerySet:
    """Patients the caller's role may see, oldest registration first."""
    q = access.visibility_filter(principal.role)
    if status:
        q &= Q(status=status)
    return list_patients(q)


def get_visible(principal: Principal, patient_id) -> Patient:
    access.ensure_role(principal.role, access.VISIBILITY)
    patient = get(patient_id)
    access.ensure_can_view(principal.role, patient)
    return patient

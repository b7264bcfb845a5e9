from datetime import date

import pytest

from visits.access import Principal
from visits.exceptions import Conflict, Forbidden, NotFound, PreconditionFailed, ValidationError
from visits.models import Patient, PatientTransition, User
from visits.services import patients as svc
from visits.workflow import Role, Status

pytestmark = pytest.mark.django_db


def principal(role):
    user = User.objects.create_user(username=f'{role}_svc', password='P@ssw0rd1', role=role)
    return Principal.from_user(user)


def draft(phone='+15551234', **extra):
    data = {
        'first_name': 'Jane',
        'last_name': 'Doe',
        'date_of_birth': date(1990, 6, 15),
        'phone_number': phone,
        'address': '12 High Street',
    }
    data.update(extra)
    return data


@pytest.fixture
def staff():
    return {role: principal(role) for role in Role.ALL}


def test_calculate_age_counts_whole_years():
    assert svc.calculate_age(date(1990, 6, 15), today=date(2020, 6, 14)) == 29
    assert svc.calculate_age(date(1990, 6, 15), today=date(2020, 6, 15)) == 30
    assert svc.calculate_age(date(2020, 1, 1), today=date(2020, 1, 1)) == 0


def test_register_sets_status_age_and_timestamp(staff):
    patient = svc.register_patient(staff[Role.REGISTRAR], draft())
    assert patient.status == Status.REGISTERED
    assert patient.registered_at is not None
    assert patient.age == svc.calculate_age(date(1990, 6, 15))
    assert patient.gender == ''
    t = PatientTransition.objects.get(patient=patient)
    assert (t.action, t.from_status, t.to_status) == ('register', None, Status.REGISTERED)
    assert t.operator.username == 'registrar_svc'


def test_duplicate_phone_is_conflict_and_creates_nothing(staff):
    svc.register_patient(staff[Role.REGISTRAR], draft())
    with pytest.raises(Conflict):
        svc.register_patient(staff[Role.ADMIN], draft(first_name='John'))
    assert Patient.objects.count() == 1


def test_register_requires_registrar_or_admin(staff):
    with pytest.raises(Forbidden):
        svc.register_patient(staff[Role.NURSE], draft())
    assert not Patient.objects.exists()


def test_missing_patient_is_not_found(staff):
    with pytest.raises(NotFound):
        svc.add_nurse_note(staff[Role.NURSE], 999, 'BP normal')
    with pytest.raises(NotFound):
        svc.get_visible(staff[Role.ADMIN], 999)


def test_nurse_note_twice_fails_second_time(staff):
    patient = svc.register_patient(staff[Role.REGISTRAR], draft())
    updated = svc.add_nurse_note(staff[Role.NURSE], patient.pk, 'BP normal')
    assert updated.status == Status.AWAITING_DOCTOR
    assert updated.notes_taken_at is not None
    with pytest.raises(PreconditionFailed):
        svc.add_nurse_note(staff[Role.NURSE], patient.pk, 'BP high')
    assert svc.get(patient.pk).nurse_note == 'BP normal'


def test_stale_status_write_is_rejected(staff):
    patient = svc.register_patient(staff[Role.REGISTRAR], draft())
    with pytest.raises(PreconditionFailed):
        svc.update(patient.pk, {'nurse_note': 'late'}, expected_statuses=[Status.AWAITING_DOCTOR])
    assert svc.get(patient.pk).nurse_note is None
    with pytest.raises(NotFound):
        svc.update(12345, {'nurse_note': 'x'}, expected_statuses=[Status.REGISTERED])


def test_full_visit_and_reconsultation(staff):
    patient = svc.register_patient(staff[Role.REGISTRAR], draft())
    svc.add_nurse_note(staff[Role.NURSE], patient.pk, 'BP normal')
    svc.add_doctor_note(staff[Role.DOCTOR], patient.pk, 'flu', 'rest')
    done = svc.dispense_medication(staff[Role.PHARMACIST], patient.pk, ['paracetamol'], '500mg', '5 days')
    assert done.status == Status.COMPLETED
    assert done.pharmacist_note == {'drugs': ['paracetamol'], 'dosage': '500mg', 'duration': '5 days'}

    again = svc.reconsult(staff[Role.DOCTOR], patient.pk, 'bronchitis', 'antibiotics')
    assert again.status == Status.AWAITING_MEDICATION
    assert again.doctor_note == {'diagnosis': 'bronchitis', 'instructions': 'antibiotics'}
    assert again.doctor_reviewed_at >= done.doctor_reviewed_at

    actions = list(PatientTransition.objects.filter(patient=patient).order_by('id').values_list('action', flat=True))
    assert actions == ['register', 'add_nurse_note', 'add_doctor_note', 'dispense_medication', 'reconsult']


def test_dispense_with_no_drugs_is_validation_error(staff):
    patient = svc.register_patient(staff[Role.REGISTRAR], draft())
    with pytest.raises(ValidationError):
        svc.dispense_medication(staff[Role.PHARMACIST], patient.pk, [], '500mg', '5 days')


def test_reconsult_without_doctor_note_fails(staff):
    patient = svc.register_patient(staff[Role.REGISTRAR], draft())
    svc.add_nurse_note(staff[Role.NURSE], patient.pk, 'BP normal')
    with pytest.raises(PreconditionFailed):
        svc.reconsult(staff[Role.DOCTOR], patient.pk, 'flu', 'rest')


def test_edit_registration_keeps_status_and_registered_at(staff):
    patient = svc.register_patient(staff[Role.REGISTRAR], draft())
    svc.add_nurse_note(staff[Role.NURSE], patient.pk, 'BP normal')
    edited = svc.edit_registration(
        staff[Role.REGISTRAR], patient.pk,
        {'address': '  34 Low Road ', 'date_of_birth': date(2000, 1, 1), 'phone_number': '+15559999'},
    )
    assert edited.status == Status.AWAITING_DOCTOR
    assert edited.registered_at == patient.registered_at
    assert edited.last_edited_at is not None
    assert edited.address == '34 Low Road'
    assert edited.phone_number == '+15559999'
    assert edited.age == svc.calculate_age(date(2000, 1, 1))


def test_edit_registration_phone_conflict(staff):
    first = svc.register_patient(staff[Role.REGISTRAR], draft())
    svc.register_patient(staff[Role.REGISTRAR], draft(phone='+15557777'))
    with pytest.raises(Conflict):
        svc.edit_registration(staff[Role.REGISTRAR], first.pk, {'phone_number': '+15557777'})
    # Keeping the own number is not a conflict
    svc.edit_registration(staff[Role.REGISTRAR], first.pk, {'phone_number': '+15551234'})


def test_edit_registration_rejects_blank_address(staff):
    patient = svc.register_patient(staff[Role.REGISTRAR], draft())
    with pytest.raises(ValidationError):
        svc.edit_registration(staff[Role.ADMIN], patient.pk, {'address': '   '})
    assert svc.get(patient.pk).last_edited_at is None


def test_list_visible_never_widens_with_status(staff):
    a = svc.register_patient(staff[Role.REGISTRAR], draft())
    svc.register_patient(staff[Role.REGISTRAR], draft(phone='+15552222'))
    svc.add_nurse_note(staff[Role.NURSE], a.pk, 'BP normal')

    nurse = staff[Role.NURSE]
    assert list(svc.list_visible(nurse, status=Status.AWAITING_DOCTOR)) == []
    assert [p.phone_number for p in svc.list_visible(nurse)] == ['+15552222']
    assert [p.id for p in svc.list_visible(staff[Role.DOCTOR])] == [a.id]
    assert [p.id for p in svc.list_visible(staff[Role.REGISTRAR], status=Status.AWAITING_DOCTOR)] == [a.id]


def test_register_enforces_phone_format_and_address(staff):
    with pytest.raises(ValidationError) as exc:
        svc.register_patient(staff[Role.REGISTRAR], draft(phone='garbage', address='   '))
    assert {'phone_number', 'address'} <= set(exc.value.detail)
    assert not Patient.objects.exists()


def test_register_requires_every_identity_field(staff):
    data = draft()
    del data['address']
    with pytest.raises(ValidationError):
        svc.register_patient(staff[Role.REGISTRAR], data)
    assert not Patient.objects.exists()


def test_register_trims_identity_fields(staff):
    patient = svc.register_patient(staff[Role.REGISTRAR], draft(first_name=' Jane ', address=' 12 High Street\n'))
    assert (patient.first_name, patient.address) == ('Jane', '12 High Street')


def test_edit_registration_rejects_invalid_phone(staff):
    patient = svc.register_patient(staff[Role.REGISTRAR], draft())
    with pytest.raises(ValidationError):
        svc.edit_registration(staff[Role.REGISTRAR], patient.pk, {'phone_number': 'call me'})
    assert svc.get(patient.pk).phone_number == '+15551234'


def test_blank_notes_are_refused(staff):
    patient = svc.register_patient(staff[Role.REGISTRAR], draft())
    with pytest.raises(ValidationError):
        svc.add_nurse_note(staff[Role.NURSE], patient.pk, '  ')
    svc.add_nurse_note(staff[Role.NURSE], patient.pk, 'BP normal')

    with pytest.raises(ValidationError):
        svc.add_doctor_note(staff[Role.DOCTOR], patient.pk, '', ' ')
    assert svc.get(patient.pk).status == Status.AWAITING_DOCTOR
    svc.add_doctor_note(staff[Role.DOCTOR], patient.pk, 'flu', 'rest')

    with pytest.raises(ValidationError):
        svc.reconsult(staff[Role.DOCTOR], patient.pk, 'flu', '')
    with pytest.raises(ValidationError):
        svc.dispense_medication(staff[Role.PHARMACIST], patient.pk, ['paracetamol'], ' ', '5 days')
    assert svc.get(patient.pk).doctor_note == {'diagnosis': 'flu', 'instructions': 'rest'}


def test_role_is_checked_before_payload(staff):
    patient = svc.register_patient(staff[Role.REGISTRAR], draft())
    with pytest.raises(Forbidden):
        svc.add_nurse_note(staff[Role.DOCTOR], patient.pk, '')
    with pytest.raises(Forbidden):
        svc.edit_registration(staff[Role.NURSE], patient.pk, {'address': ''})


def test_edit_registration_survives_concurrent_progress(staff, monkeypatch):
    patient = svc.register_patient(staff[Role.REGISTRAR], draft())
    real_age = svc.calculate_age

    def age_while_nurse_commits(dob, today=None):
        # Another request moves the patient on between the edit's read and write
        Patient.objects.filter(pk=patient.pk).update(status=Status.AWAITING_DOCTOR, nurse_note='BP normal')
        return real_age(dob, today)

    monkeypatch.setattr(svc, 'calculate_age', age_while_nurse_commits)
    edited = svc.edit_registration(staff[Role.REGISTRAR], patient.pk, {'address': '34 Low Road'})
    assert edited.address == '34 Low Road'
    assert edited.status == Status.AWAITING_DOCTOR
    t = PatientTransition.objects.get(patient=patient, action='edit_registration')
    assert (t.from_status, t.to_status) == (Status.AWAITING_DOCTOR, Status.AWAITING_DOCTOR)


def test_forward_action_still_rejects_concurrent_progress(staff, monkeypatch):
    patient = svc.register_patient(staff[Role.REGISTRAR], draft())
    real_now = svc.timezone.now

    def now_after_other_nurse():
        Patient.objects.filter(pk=patient.pk).update(status=Status.AWAITING_DOCTOR, nurse_note='first')
        return real_now()

    monkeypatch.setattr(svc.timezone, 'now', now_after_other_nurse)
    with pytest.raises(PreconditionFailed):
        svc.add_nurse_note(staff[Role.NURSE], patient.pk, 'second')
    monkeypatch.undo()
    assert svc.get(patient.pk).nurse_note == 'first'

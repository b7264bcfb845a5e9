"""
Patient workflow endpoints.

Each handler validates its payload, hands the action to
:mod:`visits.services.patients` and renders the resulting record.  Role
gates are declared with the permission classes from
:mod:`visits.permissions`; status guards and role visibility are
enforced by the service layer so every route applies the same rules.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from visits import workflow
from visits.access import Principal
from visits.models import Patient
from visits.permissions import (
    CanAddDoctorNote,
    CanAddNurseNote,
    CanDispenseMedication,
    CanEditRegistration,
    CanReconsult,
    CanRegister,
    IsWorkflowStaff,
)
from visits.serializers.patient import (
    DoctorNoteSerializer,
    MedicationSerializer,
    NurseNoteSerializer,
    PatientListQuerySerializer,
    PatientRegistrationSerializer,
)
from visits.services import patients as patient_service


def _iso(value):
    return value.isoformat() if value else None


def _serialize_patient(patient: Patient) -> dict:
    return {
        'id': patient.id,
        'firstName': patient.first_name,
        'lastName': patient.last_name,
        'dateOfBirth': _iso(patient.date_of_birth),
        'age': patient.age,
        'phoneNumber': patient.phone_number,
        'address': patient.address,
        'gender': patient.gender or None,
        'status': patient.status,
        'nurseNotes': patient.nurse_note,
        'doctorNote': patient.doctor_note,
        'pharmacistNote': patient.pharmacist_note,
        'timestamps': {
            'registeredAt': _iso(patient.registered_at),
            'notesTakenAt': _iso(patient.notes_taken_at),
            'doctorReviewedAt': _iso(patient.doctor_reviewed_at),
            'medicationDispensedAt': _iso(patient.medication_dispensed_at),
            'lastEditedAt': _iso(patient.last_edited_at),
        },
    }


def _serialize_patient_detail(patient: Patient, principal: Principal) -> dict:
    """Patient fields plus the visit history and what the caller may do next."""
    data = _serialize_patient(patient)
    data['transitionHistory'] = [
        {
            'action': t.action,
            'from': t.from_status,
            'to': t.to_status,
            'operator': t.operator.username if t.operator else '',
            'timestamp': _iso(t.timestamp),
        }
        for t in patient.transitions.select_related('operator').order_by('timestamp', 'id')
    ]
    data['allowedActions'] = workflow.allowed_actions(principal.role, patient)
    return data


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsWorkflowStaff])
def list_patients(request):
    """List the patients relevant to the caller's stage, oldest first.

    An optional ``status`` query parameter narrows the role's view; it
    never widens it.
    """
    q = PatientListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    principal = Principal.from_user(request.user)
    qs = patient_service.list_visible(principal, status=q.validated_data.get('status'))
    return Response([_serialize_patient(p) for p in qs])


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsWorkflowStaff])
def patient_detail(request, pk: int):
    principal = Principal.from_user(request.user)
    patient = patient_service.get_visible(principal, pk)
    return Response(_serialize_patient_detail(patient, principal))


@api_view(['POST'])
@permission_classes([IsAuthenticated, CanRegister])
def register_patient(request):
    data = PatientRegistrationSerializer(data=request.data)
    data.is_valid(raise_exception=True)
    patient = patient_service.register_patient(Principal.from_user(request.user), data.validated_data)
    return Response(_serialize_patient(patient), status=status.HTTP_201_CREATED)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, CanAddNurseNote])
def add_nurse_notes(request, pk: int):
    data = NurseNoteSerializer(data=request.data)
    data.is_valid(raise_exception=True)
    patient = patient_service.add_nurse_note(Principal.from_user(request.user), pk, data.validated_data['notes'])
    return Response(_serialize_patient(patient))


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, CanAddDoctorNote])
def add_doctor_note(request, pk: int):
    data = DoctorNoteSerializer(data=request.data)
    data.is_valid(raise_exception=True)
    patient = patient_service.add_doctor_note(
        Principal.from_user(request.user),
        pk,
        diagnosis=data.validated_data['diagnosis'],
        instructions=data.validated_data['instructions'],
    )
    return Response(_serialize_patient(patient))


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, CanDispenseMedication])
def add_medication(request, pk: int):
    data = MedicationSerializer(data=request.data)
    data.is_valid(raise_exception=True)
    patient = patient_service.dispense_medication(
        Principal.from_user(request.user),
        pk,
        drugs=data.validated_data['drugs'],
        dosage=data.validated_data['dosage'],
        duration=data.validated_data['duration'],
    )
    return Response(_serialize_patient(patient))


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, CanReconsult])
def reconsult_patient(request, pk: int):
    """Overwrite the doctor note and send the patient back to the pharmacy queue."""
    data = DoctorNoteSerializer(data=request.data)
    data.is_valid(raise_exception=True)
    patient = patient_service.reconsult(
        Principal.from_user(request.user),
        pk,
        diagnosis=data.validated_data['diagnosis'],
        instructions=data.validated_data['instructions'],
    )
    return Response(_serialize_patient(patient))


@api_view(['PUT'])
@permission_classes([IsAuthenticated, CanEditRegistration])
def edit_registration(request, pk: int):
    """Correct identity fields at any stage without moving the patient.

    Only the fields present in the body are overwritten; ``age`` is
    recomputed from the (possibly new) date of birth.
    """
    data = PatientRegistrationSerializer(data=request.data, partial=True)
    data.is_valid(raise_exception=True)
    patient = patient_service.edit_registration(Principal.from_user(request.user), pk, data.validated_data)
    return Response(_serialize_patient(patient))


# Mutating endpoints share one throttle bucket per user
for _view in (register_patient, add_nurse_notes, add_doctor_note, add_medication, reconsult_patient, edit_registration):
    _view.cls.throttle_scope = 'patient_write'

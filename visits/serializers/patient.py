import bleach
from django.core.validators import RegexValidator
from django.utils import timezone
from rest_framework import serializers

from visits.models import PHONE_PATTERN
from visits.workflow import Status


def _clean(v):
    # Trim after stripping tags so markup-only input ends up empty
    return bleach.clean(v or '', strip=True).strip()


def _required(v, message):
    v = _clean(v)
    if not v:
        raise serializers.ValidationError(message)
    return v


class PatientRegistrationSerializer(serializers.Serializer):
    firstName = serializers.CharField(max_length=100, source='first_name')
    lastName = serializers.CharField(max_length=100, source='last_name')
    dateOfBirth = serializers.DateField(source='date_of_birth')
    phoneNumber = serializers.CharField(
        max_length=16,
        source='phone_number',
        validators=[RegexValidator(PHONE_PATTERN, 'Please enter a valid phone number')],
    )
    address = serializers.CharField(max_length=255)
    gender = serializers.CharField(max_length=20, required=False, allow_blank=True)

    def validate_firstName(self, v):
        return _required(v, 'First name is required')

    def validate_lastName(self, v):
        return _required(v, 'Last name is required')

    def validate_dateOfBirth(self, v):
        if v > timezone.localdate():
            raise serializers.ValidationError('Date of birth cannot be in the future')
        return v

    def validate_address(self, v):
        return _required(v, 'Address is required')

    def validate_gender(self, v):
        return _clean(v)


class NurseNoteSerializer(serializers.Serializer):
    notes = serializers.CharField(max_length=5000)

    def validate_notes(self, v):
        return _required(v, 'Nurse notes are required')


class DoctorNoteSerializer(serializers.Serializer):
    diagnosis = serializers.CharField(max_length=2000)
    instructions = serializers.CharField(max_length=2000)

    def validate_diagnosis(self, v):
        return _required(v, 'Diagnosis is required')

    def validate_instructions(self, v):
        return _required(v, 'Instructions are required')


class MedicationSerializer(serializers.Serializer):
    drugs = serializers.ListField(
        child=serializers.CharField(max_length=200),
        allow_empty=False,
        error_messages={'empty': 'Please provide at least one drug in the drugs array'},
    )
    dosage = serializers.CharField(max_length=200)
    duration = serializers.CharField(max_length=200)

    def validate_drugs(self, v):
        drugs = [_clean(d) for d in v]
        if not all(drugs):
            raise serializers.ValidationError('Drug names may not be blank')
        return drugs

    def validate_dosage(self, v):
        return _required(v, 'Dosage is required')

    def validate_duration(self, v):
        return _required(v, 'Duration is required')


class PatientListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=sorted(Status.ALL), required=False)

"""
Database models for the clinic workflow backend.

A :class:`Patient` row is the canonical record of one visit as it moves
from the registration desk through nursing, the doctor and the
pharmacy.  Staff accounts are :class:`User` rows carrying a single
workflow role.  Every accepted workflow action is also recorded as a
:class:`PatientTransition` so the history of a visit can be replayed.
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.core.validators import RegexValidator
from django.db import models

from .workflow import Role, Status

PHONE_PATTERN = r'^\+?[0-9]\d{1,14}$'


class User(AbstractUser):
    """Staff account with exactly one workflow role."""
    ROLE_CHOICES = Role.CHOICES
    # An empty role is allowed at the database level (e.g. createsuperuser)
    # but such an account is refused by every workflow endpoint.
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, blank=True, default='')

    def __str__(self) -> str:
        return f"{self.username} ({self.role or '-'})"


class Patient(models.Model):
    """One patient visit and its position in the workflow."""
    STATUS_CHOICES = Status.CHOICES

    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    date_of_birth = models.DateField()
    age = models.PositiveIntegerField()
    phone_number = models.CharField(
        max_length=16,
        unique=True,
        validators=[RegexValidator(PHONE_PATTERN, 'Please enter a valid phone number')],
    )
    address = models.CharField(max_length=255)
    gender = models.CharField(max_length=20, blank=True)
    # Filtered on by every role specific listing
    status = models.CharField(max_length=32, choices=STATUS_CHOICES, default=Status.REGISTERED, db_index=True)

    nurse_note = models.TextField(null=True, blank=True)
    # {"diagnosis": str, "instructions": str}
    doctor_note = models.JSONField(null=True, blank=True)
    # {"drugs": [str, ...], "dosage": str, "duration": str}
    pharmacist_note = models.JSONField(null=True, blank=True)

    registered_at = models.DateTimeField(db_index=True)
    notes_taken_at = models.DateTimeField(null=True, blank=True)
    doctor_reviewed_at = models.DateTimeField(null=True, blank=True)
    medication_dispensed_at = models.DateTimeField(null=True, blank=True)
    last_edited_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        indexes = [
            models.Index(fields=['status', 'registered_at'], name='patient_status_fifo_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.first_name} {self.last_name} ({self.status})"


class PatientTransition(models.Model):
    """Records a workflow action applied to a patient."""
    patient = models.ForeignKey(Patient, related_name='transitions', on_delete=models.CASCADE)
    action = models.CharField(max_length=32)
    from_status = models.CharField(max_length=32, null=True, blank=True)
    to_status = models.CharField(max_length=32)
    operator = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='patient_transitions'
    )
    timestamp = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.patient_id}: {self.from_status} → {self.to_status} ({self.action})"

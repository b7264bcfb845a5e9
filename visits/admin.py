"""
Django admin registrations for the visits models.

Patients are read-mostly here: status and workflow timestamps are only
meant to change through the API so that every move is guarded and
recorded as a transition.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User, Patient, PatientTransition


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ('username', 'role', 'is_active', 'is_staff')
    list_filter = ('role', 'is_active')
    fieldsets = BaseUserAdmin.fieldsets + (('Workflow', {'fields': ('role',)}),)
    add_fieldsets = BaseUserAdmin.add_fieldsets + (('Workflow', {'fields': ('role',)}),)


class PatientTransitionInline(admin.TabularInline):
    model = PatientTransition
    extra = 0
    can_delete = False
    readonly_fields = ('action', 'from_status', 'to_status', 'operator', 'timestamp')


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('id', 'first_name', 'last_name', 'phone_number', 'status', 'registered_at')
    list_filter = ('status',)
    search_fields = ('first_name', 'last_name', 'phone_number')
    ordering = ('registered_at', 'id')
    readonly_fields = (
        'status', 'age', 'registered_at', 'notes_taken_at', 'doctor_reviewed_at',
        'medication_dispensed_at', 'last_edited_at',
    )
    inlines = [PatientTransitionInline]

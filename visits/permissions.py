"""
Permission classes for role based access control.

Role sets come from the workflow transition table, so a route guarded
by :class:`CanAddNurseNote` admits exactly the roles the state machine
accepts for that action.
"""
from rest_framework.permissions import BasePermission

from . import workflow
from .workflow import Role


class HasWorkflowRole(BasePermission):
    """Allow access only to authenticated users whose role is in ``allowed_roles``."""
    allowed_roles: frozenset = Role.ALL
    message = 'Access denied'

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) in self.allowed_roles)


class IsWorkflowStaff(HasWorkflowRole):
    """Any of the five workflow roles."""
    message = 'Invalid role'


class CanRegister(HasWorkflowRole):
    allowed_roles = workflow.get_transition(workflow.REGISTER).roles
    message = 'Only registrars can register patients'


class CanEditRegistration(HasWorkflowRole):
    allowed_roles = workflow.get_transition(workflow.EDIT_REGISTRATION).roles
    message = 'Only registrars can edit patient registration'


class CanAddNurseNote(HasWorkflowRole):
    allowed_roles = workflow.get_transition(workflow.ADD_NURSE_NOTE).roles
    message = 'Only nurses can add nurse notes'


class CanAddDoctorNote(HasWorkflowRole):
    allowed_roles = workflow.get_transition(workflow.ADD_DOCTOR_NOTE).roles
    message = 'Only doctors can add doctor notes'


class CanReconsult(HasWorkflowRole):
    allowed_roles = workflow.get_transition(workflow.RECONSULT).roles
    message = 'Only doctors can reconsult patients'


class CanDispenseMedication(HasWorkflowRole):
    allowed_roles = workflow.get_transition(workflow.DISPENSE_MEDICATION).roles
    message = 'Only pharmacists can add medications'

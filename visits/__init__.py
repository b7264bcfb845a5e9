"""Clinic visit workflow application.

This package contains the patient workflow state machine, the role
based access filter, the patient record store and the JSON API built on
top of them.
"""

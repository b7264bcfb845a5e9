"""
URL mappings for the clinic workflow API.

All API paths live under ``/api/`` and deliberately omit trailing
slashes.  The patient routes follow the visit: registration, nurse
notes, doctor note, medication, plus reconsultation and registration
edits.
"""
from django.urls import path, include
from rest_framework_simplejwt.views import TokenRefreshView

from .auth_views import login_view
from .views import health
from .views.patients import (
    list_patients,
    patient_detail,
    register_patient,
    add_nurse_notes,
    add_doctor_note,
    add_medication,
    reconsult_patient,
    edit_registration,
)

urlpatterns = [
    # Prometheus exposition at /metrics
    path('', include('django_prometheus.urls')),
    path('healthz', health.healthz),
    # Authentication
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/refresh', TokenRefreshView.as_view(), name='token_refresh'),
    # Patients
    path('api/patients', list_patients, name='patient_list'),
    path('api/patients/register', register_patient, name='patient_register'),
    path('api/patients/<int:pk>', patient_detail, name='patient_detail'),
    path('api/patients/<int:pk>/nurse-notes', add_nurse_notes, name='patient_nurse_notes'),
    path('api/patients/<int:pk>/doctor-note', add_doctor_note, name='patient_doctor_note'),
    path('api/patients/<int:pk>/medication', add_medication, name='patient_medication'),
    path('api/patients/<int:pk>/reconsult', reconsult_patient, name='patient_reconsult'),
    path('api/patients/<int:pk>/registration', edit_registration, name='patient_registration'),
]

"""
URL mappings for the ward admission API.

Paths carry no trailing slash; ``APPEND_SLASH`` is off in settings so the
front-end's paths resolve exactly as written.
"""
from django.urls import include, path

from .auth_views import jwt_logout_view, jwt_refresh_view, login_view, me_view
from .views import (
    admissions, beds, dashboard, departments, health, patients, prescriptions, queues, staff, triage, wards,
)

urlpatterns = [
    path('metrics', include('django_prometheus.urls')),
    path('healthz', health.healthz, name='healthz'),
    # Authentication
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/refresh', jwt_refresh_view, name='jwt_refresh_view'),
    path('api/auth/logout', jwt_logout_view, name='jwt_logout_view'),
    path('api/auth/me', me_view, name='me_view'),
    # Staff
    path('api/users', staff.users, name='users'),
    path('api/users/<int:pk>', staff.user_detail, name='user_detail'),
    path('api/users/<int:pk>/doctor-detail', staff.doctor_detail, name='doctor_detail'),
    path('api/users/username/<str:username>', staff.user_by_username, name='user_by_username'),
    path('api/users/username/validate/<str:username>', staff.username_availability,
         name='username_availability'),
    path('api/roles', staff.roles, name='roles'),
    path('api/specializations', staff.specializations, name='specializations'),
    path('api/specializations/<int:pk>', staff.specialization_detail, name='specialization_detail'),
    # Dashboard
    path('api/dashboard', dashboard.dashboard_summary, name='dashboard'),
    # Departments, wards, beds
    path('api/departments', departments.departments, name='departments'),
    path('api/departments/<int:pk>', departments.department_detail, name='department_detail'),
    path('api/wards', wards.wards, name='wards'),
    path('api/wards/<int:pk>', wards.ward_detail, name='ward_detail'),
    path('api/wards/<int:pk>/beds', wards.ward_beds, name='ward_beds'),
    path('api/beds', beds.beds, name='beds'),
    path('api/beds/batch/<int:ward_id>', beds.beds_batch, name='beds_batch'),
    path('api/beds/<int:pk>', beds.bed_detail, name='bed_detail'),
    # Patients
    path('api/patients', patients.patients, name='patients'),
    path('api/patients/active', patients.active_patients, name='active_patients'),
    path('api/patients/active/<int:pk>', patients.active_patient_detail, name='active_patient_detail'),
    path('api/patients/nic/<str:nic>', patients.patient_by_nic, name='patient_by_nic'),
    path('api/patients/<int:pk>', patients.patient_detail, name='patient_detail'),
    # Triage
    path('api/triage', triage.triage_history, name='triage_history'),
    path('api/triage/predict', triage.predict, name='triage_predict'),
    path('api/triage/admit', triage.admit_from_triage, name='triage_admit'),
    path('api/triage/dispose', triage.dispose, name='triage_dispose'),
    path('api/triage/<int:pk>', triage.triage_detail, name='triage_detail'),
    # Queue
    path('api/patient-queue', queues.patient_queue, name='patient_queue'),
    path('api/patient-queue/<int:pk>', queues.patient_queue_detail, name='patient_queue_detail'),
    # Admissions
    path('api/patient-admissions', admissions.admissions, name='admissions'),
    path('api/patient-admissions/stats', admissions.admission_stats, name='admission_stats'),
    path('api/patient-admissions/<int:pk>', admissions.admission_detail, name='admission_detail'),
    path('api/patient-admissions/<int:pk>/discharge', admissions.discharge, name='admission_discharge'),
    path('api/patient-admissions/<int:pk>/confirm-discharge', admissions.confirm_discharge,
         name='admission_confirm_discharge'),
    path('api/patient-admissions/<int:patient_id>/has-active', admissions.has_active, name='admission_has_active'),
    # Prescriptions
    path('api/prescriptions', prescriptions.prescriptions, name='prescriptions'),
    path('api/prescriptions/<int:pk>', prescriptions.prescription_detail, name='prescription_detail'),
    path('api/prescriptions/<int:pk>/detail', prescriptions.prescription_items, name='prescription_items'),
]

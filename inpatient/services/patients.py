from __future__ import annotations

import logging
from typing import Optional

from django.db import IntegrityError, transaction
from rest_framework.exceptions import NotFound

from inpatient.exceptions import ActiveAdmissionExists, ConflictError, PatientInactive
from inpatient.models import Patient, PatientAdmission, PatientQueue
from inpatient.services import queue as queue_service
from inpatient.services.audit import log_action

logger = logging.getLogger(__name__)

PATIENT_FIELDS = {
    'fullName': 'full_name',
    'dob': 'dob',
    'gender': 'gender',
    'nic': 'nic',
    'bloodGroup': 'blood_group',
    'phone': 'phone',
}


def normalize_nic(nic: Optional[str]) -> Optional[str]:
    if not nic:
        return None
    return nic.strip().upper()


def find_by_nic(nic: str, *, active_only: bool = False) -> Patient:
    qs = Patient.objects.filter(nic=normalize_nic(nic))
    if active_only:
        qs = qs.filter(is_active=True)
    patient = qs.first()
    if not patient:
        raise NotFound('patient not found')
    return patient


def get_patient(patient_id: int, *, active_only: bool = False) -> Patient:
    qs = Patient.objects.filter(id=patient_id)
    if active_only:
        qs = qs.filter(is_active=True)
    patient = qs.first()
    if not patient:
        raise NotFound('patient not found')
    return patient


def _save(patient: Patient) -> Patient:
    try:
        with transaction.atomic():
            patient.save()
    except IntegrityError:
        raise ConflictError('A patient with this NIC already exists.', code='nic_exists')
    return patient


def create_patient(actor, data: dict) -> Patient:
    patient = Patient(**{PATIENT_FIELDS[k]: v for k, v in data.items() if k in PATIENT_FIELDS})
    patient.nic = normalize_nic(patient.nic)
    _save(patient)
    log_action(user=actor, action='patient_create', object_type='patient', object_id=patient.id)
    return patient


def update_patient(actor, patient: Patient, data: dict) -> Patient:
    for key, value in data.items():
        if key in PATIENT_FIELDS:
            setattr(patient, PATIENT_FIELDS[key], value)
    patient.nic = normalize_nic(patient.nic)
    _save(patient)
    log_action(user=actor, action='patient_update', object_type='patient', object_id=patient.id,
               detail={'fields': sorted(k for k in data if k in PATIENT_FIELDS)})
    return patient


def archive_patient(actor, patient: Patient) -> Patient:
    """Soft delete: mark the patient inactive.

    A pending queue entry is cancelled in the same transaction.
    """
    with transaction.atomic():
        locked = Patient.objects.select_for_update().get(id=patient.id)
        if not locked.is_active:
            raise PatientInactive('Patient is already archived.')
        if locked.admissions.filter(status=PatientAdmission.STATUS_ACTIVE).exists():
            raise ActiveAdmissionExists('Patient has an active admission.')
        pending = queue_service.find_blocking(locked.id, lock=True)
        if pending is not None:
            queue_service.update_entry(actor, pending, status=PatientQueue.STATUS_CANCELLED,
                                       reason='patient archived')
        locked.is_active = False
        locked.save(update_fields=['is_active'])
        log_action(user=actor, action='patient_archive', object_type='patient', object_id=locked.id)
    logger.info('Patient %s archived by %s', locked.id, getattr(actor, 'username', None))
    return locked


def format_patient(patient: Patient, *, latest_status: Optional[str] = None, with_latest: bool = False) -> dict:
    data = {
        'id': patient.id,
        'fullName': patient.full_name,
        'dob': patient.dob.isoformat() if patient.dob else None,
        'gender': patient.gender,
        'nic': patient.nic,
        'bloodGroup': patient.blood_group,
        'phone': patient.phone,
        'isActive': patient.is_active,
        'createdAt': patient.created_at.isoformat(),
    }
    if with_latest:
        data['latestAdmissionStatus'] = latest_status
    return data

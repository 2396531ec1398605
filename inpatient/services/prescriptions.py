"""
Prescription ledger.

Inpatient (IPD) prescriptions hang off an admission and may only be
written while that admission is ACTIVE.  Outpatient (OPD) prescriptions
reference the queue entry the patient was seen from instead.
"""
from __future__ import annotations

import logging
from typing import Optional

from django.db import transaction
from rest_framework.exceptions import ValidationError

from inpatient.exceptions import AdmissionNotActive, InvalidTransition
from inpatient.models import PatientAdmission, PatientQueue, Prescription, PrescriptionItem, User
from inpatient.services.admissions import require_role
from inpatient.services.audit import log_action

logger = logging.getLogger(__name__)

STATUS_ORDER = [Prescription.STATUS_DRAFT, Prescription.STATUS_FINALIZED, Prescription.STATUS_DISPENSED]

ITEM_FIELDS = {
    'medicineName': 'medicine_name',
    'dosage': 'dosage',
    'frequency': 'frequency',
    'durationDays': 'duration_days',
    'instructions': 'instructions',
}


def _check_admission(admission: Optional[PatientAdmission], rx_type: str) -> None:
    if admission is None:
        return
    if rx_type != Prescription.TYPE_IPD:
        raise ValidationError({'type': ['Prescriptions attached to an admission must be IPD.']})
    if admission.status != PatientAdmission.STATUS_ACTIVE:
        raise AdmissionNotActive('Cannot change prescriptions when admission is not ACTIVE.')


def _resolve_targets(data: dict) -> tuple[Optional[PatientAdmission], Optional[PatientQueue]]:
    admission = queue = None
    if data.get('admissionId'):
        admission = PatientAdmission.objects.select_for_update().filter(id=data['admissionId']).first()
        if admission is None:
            raise ValidationError({'admissionId': ['Admission does not exist.']})
    if data.get('queueId'):
        queue = PatientQueue.objects.filter(id=data['queueId']).first()
        if queue is None:
            raise ValidationError({'queueId': ['Queue entry does not exist.']})
    return admission, queue


def _replace_items(rx: Prescription, items: list[dict]) -> None:
    rx.items.all().delete()
    PrescriptionItem.objects.bulk_create([
        PrescriptionItem(prescription=rx, **{ITEM_FIELDS[k]: v for k, v in item.items() if k in ITEM_FIELDS})
        for item in items
    ])


def create_prescription(actor, data: dict) -> Prescription:
    require_role(actor, User.ROLE_DOCTOR)
    rx_type = data.get('type') or Prescription.TYPE_IPD
    with transaction.atomic():
        admission, queue = _resolve_targets(data)
        if admission is None and rx_type == Prescription.TYPE_IPD:
            raise ValidationError({'admissionId': ['IPD prescriptions need an admission.']})
        if rx_type == Prescription.TYPE_OPD and queue is None:
            raise ValidationError({'queueId': ['OPD prescriptions need a queue entry.']})
        _check_admission(admission, rx_type)
        rx = Prescription.objects.create(
            admission=admission,
            queue=queue,
            doctor=actor,
            type=rx_type,
            notes=data.get('notes', ''),
        )
        _replace_items(rx, data.get('items') or [])
        log_action(user=actor, action='prescription_create', object_type='prescription', object_id=rx.id,
                   detail={'admissionId': rx.admission_id, 'queueId': rx.queue_id, 'type': rx.type})
    logger.info('Prescription #%s created for admission %s', rx.id, rx.admission_id)
    return rx


def update_prescription(actor, rx: Prescription, data: dict) -> Prescription:
    """Update notes/status and replace the item list when ``items`` is given."""
    require_role(actor, User.ROLE_DOCTOR)
    with transaction.atomic():
        locked = Prescription.objects.select_for_update().get(id=rx.id)
        admission = None
        if locked.admission_id:
            admission = PatientAdmission.objects.select_for_update().get(id=locked.admission_id)
        _check_admission(admission, locked.type)
        if 'notes' in data:
            locked.notes = data['notes']
        new_status = data.get('status')
        if new_status and new_status != locked.status:
            if STATUS_ORDER.index(new_status) < STATUS_ORDER.index(locked.status):
                raise InvalidTransition(f'Cannot move prescription from {locked.status} to {new_status}.')
            locked.status = new_status
        locked.save()
        if 'items' in data and data['items'] is not None:
            _replace_items(locked, data['items'])
        log_action(user=actor, action='prescription_update', object_type='prescription', object_id=locked.id)
    return locked


def delete_prescription(actor, rx: Prescription) -> None:
    require_role(actor, User.ROLE_DOCTOR)
    with transaction.atomic():
        locked = Prescription.objects.select_for_update().get(id=rx.id)
        if locked.admission_id:
            admission = PatientAdmission.objects.select_for_update().get(id=locked.admission_id)
            _check_admission(admission, locked.type)
        rx_id = locked.id
        locked.delete()
        log_action(user=actor, action='prescription_delete', object_type='prescription', object_id=rx_id)


def list_prescriptions(*, admission_id: Optional[int] = None) -> list[Prescription]:
    qs = Prescription.objects.select_related('doctor').prefetch_related('items').order_by('-created_at', '-id')
    if admission_id:
        qs = qs.filter(admission_id=admission_id)
    return list(qs)


def format_summary(rx: Prescription) -> dict:
    return {
        'id': rx.id,
        'doctorId': rx.doctor_id,
        'doctorName': (rx.doctor.get_full_name() or rx.doctor.username) if rx.doctor else None,
        'admissionId': rx.admission_id,
        'queueId': rx.queue_id,
        'type': rx.type,
        'notes': rx.notes,
        'status': rx.status,
        'createdAt': rx.created_at.isoformat(),
        'updatedAt': rx.updated_at.isoformat(),
    }


def format_detail(rx: Prescription) -> dict:
    return {
        **format_summary(rx),
        'items': [
            {
                'id': item.id,
                'prescriptionId': rx.id,
                'medicineName': item.medicine_name,
                'dosage': item.dosage,
                'frequency': item.frequency,
                'durationDays': item.duration_days,
                'instructions': item.instructions,
            }
            for item in sorted(rx.items.all(), key=lambda i: i.id)
        ],
    }

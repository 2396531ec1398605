"""
Triage to queue to bed.

Thin orchestration over the triage, queue and admission services for the
triage desk: predict, then either queue the patient, admit straight into a
bed, or close the pending queue entry as outpatient or cancelled.
"""
from __future__ import annotations

from typing import Optional

from rest_framework.exceptions import NotFound, ValidationError

from inpatient.models import Patient, PatientAdmission, PatientQueue, TriageRecord
from inpatient.services import admissions, queue, triage


def predict(actor, vitals: dict, *, patient: Optional[Patient] = None, name: str = '') -> TriageRecord:
    return triage.predict(actor, vitals, patient=patient, name=name)


def enqueue(actor, patient: Patient, triage_id: Optional[int] = None) -> PatientQueue:
    record = None
    if triage_id is not None:
        record = TriageRecord.objects.filter(id=triage_id).first()
        if record is None:
            raise ValidationError({'triageId': ['Triage record does not exist.']})
    return queue.enqueue(actor, patient, record)


def admit_from_triage(actor, patient: Patient, bed_id: int, queue_id: Optional[int] = None) -> PatientAdmission:
    """Admit directly from the triage desk.

    The patient's pending queue entry, if any, is closed as admitted in the
    same transaction so no WAITING entry is left behind.
    """
    return admissions.admit(
        actor,
        patient_id=patient.id,
        bed_id=bed_id,
        queue_id=queue_id,
        close_blocking_queue=queue_id is None,
    )


def _pending_entry(patient: Patient) -> PatientQueue:
    entry = queue.find_blocking(patient.id)
    if entry is None:
        raise NotFound('no pending queue entry for this patient')
    return entry


def mark_outpatient(actor, entry: PatientQueue, reason: str = 'treated as outpatient') -> PatientQueue:
    return queue.update_entry(actor, entry, status=PatientQueue.STATUS_OUTPATIENT, reason=reason)


def cancel(actor, entry: PatientQueue, reason: str = 'cancelled') -> PatientQueue:
    return queue.update_entry(actor, entry, status=PatientQueue.STATUS_CANCELLED, reason=reason)


def dispose(actor, patient: Patient, disposition: str, reason: str = '') -> PatientQueue:
    """Close the patient's pending entry as OUTPATIENT or CANCELLED."""
    entry = _pending_entry(patient)
    if disposition == PatientQueue.STATUS_OUTPATIENT:
        return mark_outpatient(actor, entry, reason or 'treated as outpatient')
    if disposition == PatientQueue.STATUS_CANCELLED:
        return cancel(actor, entry, reason or 'cancelled')
    raise ValidationError({'disposition': [f'Unsupported disposition {disposition!r}.']})

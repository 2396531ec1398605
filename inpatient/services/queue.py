"""
Triage queue.

A patient may hold at most one *blocking* entry: one that is WAITING, or
ADMITTED while the bed assignment is still outstanding (``admitted`` is
false).  The ``admitted`` flag itself is set only by the admission
workflow when the patient actually gets a bed.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from django.db import transaction
from django.db.models import Q
from rest_framework.exceptions import PermissionDenied, ValidationError

from inpatient.exceptions import ActiveAdmissionExists, BlockingQueueExists, InvalidTransition, PatientInactive
from inpatient.models import Patient, PatientAdmission, PatientQueue, QueueTransition, TriageRecord, User
from inpatient.services import events
from inpatient.services.audit import log_action
from inpatient.services.triage import infer_priority

logger = logging.getLogger(__name__)

BLOCKING_Q = Q(status=PatientQueue.STATUS_WAITING) | Q(status=PatientQueue.STATUS_ADMITTED, admitted=False)

PRIORITY_RANK = {
    PatientQueue.PRIORITY_CRITICAL: 0,
    PatientQueue.PRIORITY_NORMAL: 1,
    PatientQueue.PRIORITY_NON_CRITICAL: 2,
}

TRANSITIONS = {
    PatientQueue.STATUS_WAITING: {
        PatientQueue.STATUS_ADMITTED,
        PatientQueue.STATUS_OUTPATIENT,
        PatientQueue.STATUS_CANCELLED,
    },
    # Only while no bed has been assigned yet.
    PatientQueue.STATUS_ADMITTED: {
        PatientQueue.STATUS_OUTPATIENT,
        PatientQueue.STATUS_CANCELLED,
    },
    PatientQueue.STATUS_OUTPATIENT: set(),
    PatientQueue.STATUS_CANCELLED: set(),
}


def is_blocking(entry: PatientQueue) -> bool:
    return entry.status == PatientQueue.STATUS_WAITING or (
        entry.status == PatientQueue.STATUS_ADMITTED and not entry.admitted
    )


def find_blocking(patient_id: int, *, lock: bool = False) -> Optional[PatientQueue]:
    qs = PatientQueue.objects.filter(BLOCKING_Q, patient_id=patient_id)
    if lock:
        qs = qs.select_for_update()
    return qs.order_by('-created_at').first()


def can_transition(entry: PatientQueue, new: str) -> bool:
    if entry.status == PatientQueue.STATUS_ADMITTED and entry.admitted:
        return False
    return new in TRANSITIONS.get(entry.status, set())


def record_transition(entry: PatientQueue, old_status: Optional[str], actor, reason: str = '') -> QueueTransition:
    return QueueTransition.objects.create(
        entry=entry,
        from_status=old_status,
        to_status=entry.status,
        operator=actor if getattr(actor, 'pk', None) else None,
        reason=reason,
    )


def enqueue(actor, patient: Patient, triage: Optional[TriageRecord] = None) -> PatientQueue:
    """Put a patient in the queue with a priority inferred from triage."""
    if triage is not None and triage.patient_id and triage.patient_id != patient.id:
        raise ValidationError({'triageId': ['Triage record belongs to another patient.']})
    with transaction.atomic():
        locked = Patient.objects.select_for_update().get(id=patient.id)
        if not locked.is_active:
            raise PatientInactive()
        blocking = find_blocking(locked.id, lock=True)
        if blocking:
            logger.warning('Enqueue rejected for patient %s: blocking entry #%s', locked.id, blocking.id)
            raise BlockingQueueExists(
                f'Patient already has a pending queue entry (#{blocking.id}).', queueId=blocking.id
            )
        if locked.admissions.filter(status=PatientAdmission.STATUS_ACTIVE).exists():
            raise ActiveAdmissionExists()
        entry = PatientQueue.objects.create(
            patient=locked,
            triage=triage,
            priority=infer_priority(triage),
            status=PatientQueue.STATUS_WAITING,
        )
        record_transition(entry, None, actor, 'enqueued')
        log_action(user=actor, action='queue_create', object_type='queue', object_id=entry.id,
                   detail={'patientId': locked.id, 'priority': entry.priority})
        events.broadcast_queue_event(events.QUEUE_CREATED, entry.id, format_entry(entry))
    logger.info('Patient %s queued as #%s (%s)', locked.id, entry.id, entry.priority)
    return entry


def update_entry(actor, entry: PatientQueue, *, status: Optional[str] = None,
                 priority: Optional[str] = None, reason: str = '') -> PatientQueue:
    """Move a queue entry to a new status and/or override its priority.

    ADMITTED here records the decision to admit; the entry stays blocking
    until the admission workflow assigns a bed.  Priority is inferred at
    enqueue time and is never recomputed; an administrator may override it
    by hand while the entry is still pending.
    """
    if priority is not None and getattr(actor, 'role', None) != User.ROLE_ADMIN:
        raise PermissionDenied('only administrators may override queue priority')
    with transaction.atomic():
        locked = PatientQueue.objects.select_for_update().select_related('patient').get(id=entry.id)
        old_status, old_priority = locked.status, locked.priority
        if priority is not None and priority != old_priority:
            if not is_blocking(locked):
                raise InvalidTransition(f'Priority of a closed queue entry ({old_status}) cannot be changed.')
            locked.priority = priority
        if status is not None and status != old_status:
            if not can_transition(locked, status):
                logger.warning('Queue #%s: rejected %s -> %s', locked.id, old_status, status)
                raise InvalidTransition(f'Cannot move queue entry from {old_status} to {status}.')
            locked.status = status
        locked.save()
        if locked.status != old_status:
            record_transition(locked, old_status, actor, reason)
        detail = {'from': old_status, 'to': locked.status}
        if locked.priority != old_priority:
            detail['priority'] = {'from': old_priority, 'to': locked.priority}
            logger.info('Queue #%s priority %s -> %s', locked.id, old_priority, locked.priority)
        log_action(user=actor, action='queue_update', object_type='queue', object_id=locked.id, detail=detail)
        events.broadcast_queue_event(events.QUEUE_UPDATED, locked.id, format_entry(locked))
    logger.info('Queue #%s %s -> %s', locked.id, old_status, locked.status)
    return locked


def close_for_admission(actor, entry: PatientQueue, reason: str = 'admitted to bed') -> PatientQueue:
    """Mark a blocking entry as admitted with a bed; caller holds the transaction."""
    old_status = entry.status
    entry.status = PatientQueue.STATUS_ADMITTED
    entry.admitted = True
    entry.save(update_fields=['status', 'admitted', 'updated_at'])
    if old_status != entry.status:
        record_transition(entry, old_status, actor, reason)
    events.broadcast_queue_event(events.QUEUE_UPDATED, entry.id, format_entry(entry))
    return entry


def delete_entry(actor, entry: PatientQueue) -> None:
    if getattr(actor, 'role', None) != User.ROLE_ADMIN:
        raise PermissionDenied('only administrators may delete queue entries')
    with transaction.atomic():
        locked = PatientQueue.objects.select_for_update().get(id=entry.id)
        if is_blocking(locked):
            raise InvalidTransition('A pending queue entry cannot be deleted; cancel it first.')
        entry_id = locked.id
        locked.delete()
        log_action(user=actor, action='queue_delete', object_type='queue', object_id=entry_id)
        events.broadcast_queue_event(events.QUEUE_DELETED, entry_id, None)
    logger.info('Queue #%s deleted', entry_id)


def sort_for_display(entries: Iterable[PatientQueue]) -> list[PatientQueue]:
    """CRITICAL first, then NORMAL, then NON_CRITICAL; oldest first within a priority."""
    return sorted(entries, key=lambda e: (PRIORITY_RANK.get(e.priority, 1), e.created_at, e.id))


def list_entries(*, status: Optional[str] = None, patient_id: Optional[int] = None) -> list[PatientQueue]:
    qs = PatientQueue.objects.select_related('patient', 'triage')
    if status:
        qs = qs.filter(status=status)
    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    return sort_for_display(qs)


def format_entry(entry: PatientQueue, *, with_history: bool = False) -> dict:
    data = {
        'id': entry.id,
        'patientId': entry.patient_id,
        'patientName': entry.patient.full_name if entry.patient_id else None,
        'triageId': entry.triage_id,
        'triageLevel': entry.triage.triage_level if entry.triage_id else None,
        'priority': entry.priority,
        'status': entry.status,
        'admitted': entry.admitted,
        'blocking': is_blocking(entry),
        'createdAt': entry.created_at.isoformat(),
        'updatedAt': entry.updated_at.isoformat(),
    }
    if with_history:
        data['transitionHistory'] = [
            {
                'from': t.from_status,
                'to': t.to_status,
                'operator': t.operator.username if t.operator else '',
                'timestamp': t.timestamp.isoformat(),
                'reason': t.reason,
            }
            for t in entry.transitions.select_related('operator').order_by('timestamp', 'id')
        ]
    return data

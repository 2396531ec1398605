"""
Admission workflow.

State machine for a patient's occupancy of a bed::

    (none) --admit--> ACTIVE --doctor discharge--> DISCHARGED (pending)
                                                  --nurse confirm--> DISCHARGED (final)
    ACTIVE --edit--> ACTIVE (bed move)

The bed stays taken while a discharge is pending; only the nurse's
confirmation frees it.  Every transition runs in one transaction with row
locks on the rows it reads, re-checks its preconditions under those locks
and either applies completely or not at all.  The partial unique
constraints on ``PatientAdmission`` back the patient and bed checks, so a
race that slips past the locks still surfaces as the same conflict.

Role checks use the ``actor`` passed in by the caller.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from django.db import IntegrityError, transaction
from django.db.models import Count, Q
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from inpatient.exceptions import (
    ActiveAdmissionExists,
    AdmissionNotActive,
    BedTaken,
    InvalidTransition,
    PatientInactive,
)
from inpatient.models import Bed, Patient, PatientAdmission, PatientQueue, User
from inpatient.services import queue as queue_service
from inpatient.services.audit import log_action
from inpatient.services.wards import refresh_many, refresh_ward_counts

logger = logging.getLogger(__name__)

TAB_ACTIVE = 'ACTIVE'
TAB_PENDING = 'PENDING'
TAB_DISCHARGED = 'DISCHARGED'
TAB_ALL = 'ALL'
TABS = (TAB_ACTIVE, TAB_PENDING, TAB_DISCHARGED, TAB_ALL)

STATUS_RANK = {
    PatientAdmission.STATUS_ACTIVE: 0,
    PatientAdmission.STATUS_TRANSFERRED: 1,
    PatientAdmission.STATUS_DISCHARGED: 2,
}

PENDING_Q = Q(status=PatientAdmission.STATUS_DISCHARGED, discharged_at__isnull=True)
CONFIRMED_Q = Q(status=PatientAdmission.STATUS_DISCHARGED, discharged_at__isnull=False)

ADMIT_ROLES = (User.ROLE_NURSE, User.ROLE_ADMIN)
DISCHARGE_ROLES = (User.ROLE_DOCTOR,)
CONFIRM_ROLES = (User.ROLE_NURSE, User.ROLE_ADMIN)
EDIT_ROLES = (User.ROLE_ADMIN, User.ROLE_DOCTOR)


def require_role(actor, *roles: str) -> None:
    if getattr(actor, 'role', None) not in roles:
        raise PermissionDenied(f"requires role: {', '.join(roles)}")


# ---------------------------------------------------------------------
# Derived views
# ---------------------------------------------------------------------
def is_pending_confirmation(admission: PatientAdmission) -> bool:
    return admission.status == PatientAdmission.STATUS_DISCHARGED and admission.discharged_at is None


def blocked_reason(admission: PatientAdmission, action: str) -> Optional[str]:
    """Why ``action`` ('discharge', 'confirm' or 'edit') is unavailable, or ``None``."""
    if action in ('discharge', 'edit'):
        if admission.status == PatientAdmission.STATUS_ACTIVE:
            return None
        if is_pending_confirmation(admission):
            return 'Doctor discharged. Nurse confirmation required.'
        if admission.status == PatientAdmission.STATUS_DISCHARGED:
            return 'Already confirmed by nurse.'
        return 'Admission is not active.'
    if action == 'confirm':
        if is_pending_confirmation(admission):
            return None
        if admission.status == PatientAdmission.STATUS_ACTIVE:
            return 'Doctor has not discharged this patient yet.'
        if admission.status == PatientAdmission.STATUS_DISCHARGED:
            return 'Already confirmed by nurse.'
        return 'Admission is not awaiting discharge confirmation.'
    raise ValueError(f'unknown action {action!r}')


def _event_time(admission: PatientAdmission):
    return admission.discharged_at or admission.admitted_at


def sort_by_recency(admissions: Iterable[PatientAdmission]) -> list[PatientAdmission]:
    """Newest first by ``discharged_at`` (when set) or ``admitted_at``."""
    return sorted(admissions, key=lambda a: (_event_time(a), a.id), reverse=True)


def latest_status(admissions: list[PatientAdmission]) -> Optional[str]:
    """Status of the most recent admission.

    ``admissions`` must already be sorted newest first (see
    :func:`sort_by_recency`).  Returns ``None`` for an empty list.
    """
    if not admissions:
        return None
    return admissions[0].status


def sort_for_display(admissions: Iterable[PatientAdmission]) -> list[PatientAdmission]:
    """ACTIVE, then TRANSFERRED, then DISCHARGED; newest admission first within each."""
    ordered = sorted(admissions, key=lambda a: (a.admitted_at, a.id), reverse=True)
    return sorted(ordered, key=lambda a: STATUS_RANK.get(a.status, len(STATUS_RANK)))


def has_active_admission(patient_id: int) -> bool:
    return PatientAdmission.objects.filter(patient_id=patient_id, status=PatientAdmission.STATUS_ACTIVE).exists()


def list_admissions(*, tab: str = TAB_ALL, patient_id: Optional[int] = None,
                    ward_id: Optional[int] = None) -> list[PatientAdmission]:
    qs = PatientAdmission.objects.select_related('patient', 'bed', 'bed__ward')
    if tab == TAB_ACTIVE:
        qs = qs.filter(status=PatientAdmission.STATUS_ACTIVE)
    elif tab == TAB_PENDING:
        qs = qs.filter(PENDING_Q)
    elif tab == TAB_DISCHARGED:
        qs = qs.filter(CONFIRMED_Q)
    if patient_id:
        qs = qs.filter(patient_id=patient_id)
    if ward_id:
        qs = qs.filter(bed__ward_id=ward_id)
    return sort_for_display(qs)


def stats() -> dict:
    agg = PatientAdmission.objects.aggregate(
        active=Count('id', filter=Q(status=PatientAdmission.STATUS_ACTIVE)),
        pending=Count('id', filter=PENDING_Q),
        discharged=Count('id', filter=CONFIRMED_Q),
        transferred=Count('id', filter=Q(status=PatientAdmission.STATUS_TRANSFERRED)),
        total=Count('id'),
    )
    return {
        'active': agg['active'],
        'pendingNurseConfirm': agg['pending'],
        'discharged': agg['discharged'],
        'transferred': agg['transferred'],
        'total': agg['total'],
    }


# ---------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------
def _lock_patient(patient_id: int) -> Patient:
    patient = Patient.objects.select_for_update().filter(id=patient_id).first()
    if patient is None:
        raise ValidationError({'patientId': ['Patient does not exist.']})
    return patient


def _lock_bed(bed_id: int) -> Bed:
    bed = Bed.objects.select_for_update().filter(id=bed_id).first()
    if bed is None:
        raise ValidationError({'bedId': ['Bed does not exist.']})
    return bed


def _lock_admission(admission_id: int) -> PatientAdmission:
    admission = PatientAdmission.objects.select_for_update().filter(id=admission_id).first()
    if admission is None:
        raise NotFound('admission not found')
    return admission


def _require_notes(notes: str) -> str:
    notes = (notes or '').strip()
    if not notes:
        raise ValidationError({'dischargeNotes': ['Discharge notes are required.']})
    return notes


def admit(actor, *, patient_id: int, bed_id: int, queue_id: Optional[int] = None,
          close_blocking_queue: bool = False) -> PatientAdmission:
    """Create an ACTIVE admission and take the bed.

    With ``queue_id`` the named queue entry must belong to the patient and
    still be pending; it is closed as admitted.  ``close_blocking_queue``
    closes whatever pending entry the patient has (direct admission from
    triage).
    """
    require_role(actor, *ADMIT_ROLES)
    try:
        with transaction.atomic():
            # Lock order: patient, then bed, then queue.
            patient = _lock_patient(patient_id)
            if not patient.is_active:
                raise PatientInactive('Patient is archived and cannot be admitted.')
            if has_active_admission(patient.id):
                logger.warning('Admit rejected: patient %s already admitted', patient.id)
                raise ActiveAdmissionExists()
            bed = _lock_bed(bed_id)
            if bed.is_taken:
                logger.warning('Admit rejected: bed %s is taken', bed.id)
                raise BedTaken(f'Bed {bed.bed_no} is already taken.')

            entry = None
            if queue_id is not None:
                entry = PatientQueue.objects.select_for_update().filter(id=queue_id).first()
                if entry is None:
                    raise ValidationError({'queueId': ['Queue entry does not exist.']})
                if entry.patient_id != patient.id:
                    raise ValidationError({'queueId': ['Queue entry belongs to another patient.']})
                if not queue_service.is_blocking(entry):
                    raise InvalidTransition(f'Queue entry #{entry.id} is already closed ({entry.status}).')
            elif close_blocking_queue:
                entry = queue_service.find_blocking(patient.id, lock=True)

            admission = PatientAdmission.objects.create(
                patient=patient,
                bed=bed,
                queue=entry,
                status=PatientAdmission.STATUS_ACTIVE,
                admitted_at=timezone.now(),
                admitted_by=actor,
            )
            bed.is_taken = True
            bed.save(update_fields=['is_taken', 'updated_at'])
            if entry is not None:
                queue_service.close_for_admission(actor, entry)
            refresh_ward_counts(bed.ward_id)
            log_action(user=actor, action='admission_admit', object_type='admission', object_id=admission.id,
                       detail={'patientId': patient.id, 'bedId': bed.id,
                               'queueId': entry.id if entry else None})
    except IntegrityError:
        # Partial unique constraints: someone else won the race.
        logger.warning('Admit of patient %s into bed %s lost a concurrent race', patient_id, bed_id)
        if has_active_admission(patient_id):
            raise ActiveAdmissionExists()
        raise BedTaken()
    logger.info('Patient %s admitted to bed %s (admission #%s)', patient_id, bed_id, admission.id)
    return admission


def doctor_discharge(actor, admission_id: int, *, notes: str) -> PatientAdmission:
    """ACTIVE -> DISCHARGED (pending).  The bed is kept until a nurse confirms."""
    require_role(actor, *DISCHARGE_ROLES)
    notes = _require_notes(notes)
    with transaction.atomic():
        admission = _lock_admission(admission_id)
        if admission.status != PatientAdmission.STATUS_ACTIVE:
            logger.warning('Discharge rejected for admission #%s in status %s', admission.id, admission.status)
            raise AdmissionNotActive(blocked_reason(admission, 'discharge'))
        _apply_doctor_discharge(actor, admission, notes)
    logger.info('Admission #%s discharged by doctor %s; awaiting nurse', admission.id, actor.username)
    return admission


def _apply_doctor_discharge(actor, admission: PatientAdmission, notes: str) -> None:
    admission.status = PatientAdmission.STATUS_DISCHARGED
    admission.discharge_notes = notes
    admission.discharged_at = None
    admission.discharged_by = actor
    admission.save(update_fields=['status', 'discharge_notes', 'discharged_at', 'discharged_by', 'updated_at'])
    log_action(user=actor, action='admission_discharge', object_type='admission', object_id=admission.id,
               detail={'bedId': admission.bed_id})


def nurse_confirm_discharge(actor, admission_id: int, *, notes: str = '') -> PatientAdmission:
    """DISCHARGED (pending) -> DISCHARGED (final); frees the bed."""
    require_role(actor, *CONFIRM_ROLES)
    with transaction.atomic():
        admission = _lock_admission(admission_id)
        if not is_pending_confirmation(admission):
            logger.warning('Confirm rejected for admission #%s', admission.id)
            raise InvalidTransition(blocked_reason(admission, 'confirm'))
        bed = _lock_bed(admission.bed_id)
        admission.discharged_at = timezone.now()
        admission.confirmed_by = actor
        if notes:
            nurse_line = f'Nurse: {notes}'
            admission.discharge_notes = (
                f'{admission.discharge_notes}\n{nurse_line}' if admission.discharge_notes else nurse_line
            )
        admission.save(update_fields=['discharged_at', 'confirmed_by', 'discharge_notes', 'updated_at'])
        bed.is_taken = False
        bed.save(update_fields=['is_taken', 'updated_at'])
        refresh_ward_counts(bed.ward_id)
        log_action(user=actor, action='admission_confirm_discharge', object_type='admission',
                   object_id=admission.id, detail={'bedId': bed.id})
    logger.info('Admission #%s discharge confirmed; bed %s freed', admission.id, bed.id)
    return admission


def edit_admission(actor, admission_id: int, *, bed_id: Optional[int] = None,
                   discharge: bool = False, notes: str = '') -> PatientAdmission:
    """Edit an ACTIVE admission: move it to another free bed and/or discharge it.

    A discharge in the same edit follows the doctor-discharge rules,
    including the doctor-only role check, which is enforced before any
    change is made.
    """
    require_role(actor, *EDIT_ROLES)
    if discharge:
        require_role(actor, *DISCHARGE_ROLES)
        notes = _require_notes(notes)
    with transaction.atomic():
        admission = _lock_admission(admission_id)
        if admission.status != PatientAdmission.STATUS_ACTIVE:
            logger.warning('Edit rejected for admission #%s in status %s', admission.id, admission.status)
            raise AdmissionNotActive(blocked_reason(admission, 'edit'))
        touched_wards: list[int] = []
        if bed_id is not None and bed_id != admission.bed_id:
            # Lock both beds in id order.
            first, second = sorted([admission.bed_id, bed_id])
            locked = {first: _lock_bed(first), second: _lock_bed(second)}
            old_bed, new_bed = locked[admission.bed_id], locked[bed_id]
            if new_bed.is_taken:
                logger.warning('Bed move rejected: bed %s is taken', new_bed.id)
                raise BedTaken(f'Bed {new_bed.bed_no} is already taken.')
            old_bed.is_taken = False
            old_bed.save(update_fields=['is_taken', 'updated_at'])
            new_bed.is_taken = True
            new_bed.save(update_fields=['is_taken', 'updated_at'])
            admission.bed = new_bed
            try:
                with transaction.atomic():
                    admission.save(update_fields=['bed', 'updated_at'])
            except IntegrityError:
                raise BedTaken(f'Bed {new_bed.bed_no} is already taken.')
            touched_wards += [old_bed.ward_id, new_bed.ward_id]
            log_action(user=actor, action='admission_move_bed', object_type='admission', object_id=admission.id,
                       detail={'fromBedId': old_bed.id, 'toBedId': new_bed.id})
            logger.info('Admission #%s moved from bed %s to bed %s', admission.id, old_bed.id, new_bed.id)
        if discharge:
            _apply_doctor_discharge(actor, admission, notes)
            logger.info('Admission #%s discharged during edit by %s', admission.id, actor.username)
        refresh_many(touched_wards)
    return admission


# ---------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------
def format_admission(admission: PatientAdmission) -> dict:
    bed = admission.bed
    ward = bed.ward if bed else None
    return {
        'id': admission.id,
        'patientId': admission.patient_id,
        'patientName': admission.patient.full_name if admission.patient_id else None,
        'queueId': admission.queue_id,
        'bedId': admission.bed_id,
        'bedNo': bed.bed_no if bed else None,
        'wardId': ward.id if ward else None,
        'wardName': ward.name if ward else None,
        'status': admission.status,
        'admittedAt': admission.admitted_at.isoformat() if admission.admitted_at else None,
        'dischargedAt': admission.discharged_at.isoformat() if admission.discharged_at else None,
        'dischargeNotes': admission.discharge_notes,
        'pendingNurseConfirm': is_pending_confirmation(admission),
        'blockedReason': {
            'discharge': blocked_reason(admission, 'discharge'),
            'confirm': blocked_reason(admission, 'confirm'),
            'edit': blocked_reason(admission, 'edit'),
        },
        'createdAt': admission.created_at.isoformat(),
        'updatedAt': admission.updated_at.isoformat(),
    }

"""
Bed registry operations.

``Bed.is_taken`` belongs to the admission workflow.  The plain CRUD here may
only set it when a bed is first created; later updates that would flip it
are refused, with a distinct code when an admission holds the bed.
"""
from __future__ import annotations

import logging
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Q

from rest_framework.exceptions import ValidationError

from inpatient.exceptions import ConflictError, InvalidTransition
from inpatient.models import Bed, PatientAdmission, Ward
from inpatient.services.wards import refresh_many, refresh_ward_counts

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = 'B-'


def sequential_labels(count: int, prefix: Optional[str] = None) -> list[str]:
    """``['B-1', 'B-2', ...]`` for ``count`` beds."""
    prefix = DEFAULT_PREFIX if prefix is None else prefix
    return [f'{prefix}{i}' for i in range(1, count + 1)]


def _is_held(bed: Bed) -> bool:
    # Any admission still holding the bed: active, or discharged by a
    # doctor and waiting for nurse confirmation.
    return bed.admissions.filter(
        Q(status=PatientAdmission.STATUS_ACTIVE)
        | Q(status=PatientAdmission.STATUS_DISCHARGED, discharged_at__isnull=True)
    ).exists()


def create_bed(*, ward: Ward, bed_no: str, is_taken: bool = False) -> Bed:
    try:
        with transaction.atomic():
            bed = Bed.objects.create(ward=ward, bed_no=bed_no, is_taken=is_taken)
    except IntegrityError:
        raise ConflictError(f'Bed {bed_no} already exists in this ward.', code='bed_exists')
    refresh_ward_counts(ward.id)
    return bed


def _bulk_create(ward: Ward, rows: list[tuple[str, bool]]) -> list[Bed]:
    limit = getattr(settings, 'BED_BATCH_MAX', 200)
    if not rows:
        raise ValidationError('No beds requested.')
    if len(rows) > limit:
        raise ValidationError(f'At most {limit} beds may be created at once.')
    labels = [label for label, _ in rows]
    if len(set(labels)) != len(labels):
        raise ConflictError('Duplicate bed numbers in batch.', code='bed_exists')
    try:
        with transaction.atomic():
            clash = list(Bed.objects.filter(ward=ward, bed_no__in=labels).values_list('bed_no', flat=True))
            if clash:
                raise ConflictError(
                    f'Bed numbers already exist in this ward: {", ".join(sorted(clash))}.',
                    code='bed_exists', bedNos=sorted(clash),
                )
            for label, taken in rows:
                Bed.objects.create(ward=ward, bed_no=label, is_taken=taken)
    except IntegrityError:
        raise ConflictError('Bed numbers already exist in this ward.', code='bed_exists')
    refresh_ward_counts(ward.id)
    logger.info('Created %d beds in ward %s', len(rows), ward.id)
    return list(Bed.objects.filter(ward=ward, bed_no__in=labels).order_by('id'))


def batch_create_sequential(ward: Ward, *, count: int, prefix: Optional[str] = None, is_taken: bool = False) -> list[Bed]:
    """Create ``count`` beds labelled ``<prefix>1..N``; all or nothing."""
    if count < 1:
        raise ValidationError('Bed count must be at least 1.')
    return _bulk_create(ward, [(label, is_taken) for label in sequential_labels(count, prefix)])


def batch_create_items(ward: Ward, items: list[dict]) -> list[Bed]:
    """Create beds from explicit ``{bedNo, isTaken}`` items; all or nothing."""
    return _bulk_create(ward, [(item['bedNo'], bool(item.get('isTaken', False))) for item in items])


def update_bed(bed: Bed, *, bed_no: Optional[str] = None, ward: Optional[Ward] = None,
               is_taken: Optional[bool] = None) -> Bed:
    old_ward_id = bed.ward_id
    with transaction.atomic():
        locked = Bed.objects.select_for_update().get(id=bed.id)
        if is_taken is not None and is_taken != locked.is_taken:
            if _is_held(locked):
                raise ConflictError('Occupancy of a bed held by an admission cannot be changed here.',
                                    code='bed_taken')
            raise InvalidTransition('Bed occupancy only changes through admit and discharge.')
        if ward is not None and ward.id != locked.ward_id and _is_held(locked):
            raise ConflictError('A bed held by an admission cannot be moved to another ward.', code='bed_taken')
        if bed_no is not None:
            locked.bed_no = bed_no
        if ward is not None:
            locked.ward = ward
        try:
            with transaction.atomic():
                locked.save()
        except IntegrityError:
            raise ConflictError(f'Bed {locked.bed_no} already exists in this ward.', code='bed_exists')
    refresh_many([old_ward_id, locked.ward_id])
    return locked


def delete_bed(bed: Bed) -> None:
    if bed.is_taken:
        raise ConflictError('A taken bed cannot be deleted.', code='bed_taken')
    if bed.admissions.exists():
        raise ConflictError('Bed is referenced by admission history.', code='bed_in_use')
    ward_id = bed.ward_id
    bed.delete()
    refresh_ward_counts(ward_id)


def format_bed(bed: Bed) -> dict:
    return {
        'id': bed.id,
        'bedNo': bed.bed_no,
        'wardId': bed.ward_id,
        'isTaken': bed.is_taken,
        'createdAt': bed.created_at.isoformat(),
        'updatedAt': bed.updated_at.isoformat(),
    }

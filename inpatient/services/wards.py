"""
Department and ward bookkeeping.

``Ward.bed_count`` and ``Ward.occupied_beds`` are display aggregates.  They
are recomputed from the beds table after every bed create, delete or
occupancy change; nothing in the admission workflow reads them.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from django.db import IntegrityError, transaction
from django.db.models import Count, Q

from rest_framework.exceptions import ValidationError

from inpatient.exceptions import ConflictError
from inpatient.models import Bed, Department, Ward

logger = logging.getLogger(__name__)


def refresh_ward_counts(ward_id: int) -> Ward | None:
    """Re-derive ``bed_count``/``occupied_beds`` for one ward from its beds."""
    agg = Bed.objects.filter(ward_id=ward_id).aggregate(
        total=Count('id'), taken=Count('id', filter=Q(is_taken=True))
    )
    updated = Ward.objects.filter(id=ward_id).update(
        bed_count=agg['total'] or 0, occupied_beds=agg['taken'] or 0
    )
    if not updated:
        return None
    return Ward.objects.get(id=ward_id)


def refresh_many(ward_ids: Iterable[Optional[int]]) -> None:
    for ward_id in {w for w in ward_ids if w}:
        refresh_ward_counts(ward_id)


def reconcile_ward_counts() -> list[dict]:
    """Recompute aggregates for every ward and report the ones that drifted."""
    drifted: list[dict] = []
    for ward in Ward.objects.all().order_by('id'):
        before = (ward.bed_count, ward.occupied_beds)
        fresh = refresh_ward_counts(ward.id)
        after = (fresh.bed_count, fresh.occupied_beds)
        if before != after:
            logger.warning('Ward %s aggregates drifted: %s -> %s', ward.id, before, after)
            drifted.append({'wardId': ward.id, 'before': before, 'after': after})
    return drifted


def delete_department(department: Department) -> None:
    if department.wards.exists():
        raise ConflictError('Department still has wards.', code='department_in_use')
    department.delete()


def delete_ward(ward: Ward) -> None:
    if ward.beds.filter(Q(is_taken=True) | Q(admissions__isnull=False)).exists():
        raise ConflictError('Ward has beds that are taken or referenced by admissions.', code='ward_in_use')
    with transaction.atomic():
        ward.beds.all().delete()
        ward.delete()


def create_ward(*, name: str, department: Department, beds: Optional[dict] = None) -> tuple[Ward, Optional[str]]:
    """Create a ward and optionally provision its beds.

    The bed batch runs in its own transaction after the ward is saved, so
    a failed batch leaves the ward in place and comes back as a warning
    string instead of an error.
    """
    from inpatient.services.beds import batch_create_sequential

    try:
        with transaction.atomic():
            ward = Ward.objects.create(name=name, department=department)
    except IntegrityError:
        raise ConflictError('A ward with this name already exists in the department.', code='ward_exists')
    warning = None
    if beds and beds.get('count'):
        try:
            batch_create_sequential(
                ward,
                count=beds['count'],
                prefix=beds.get('prefix') or None,
                is_taken=bool(beds.get('isTaken', False)),
            )
        except (ConflictError, ValidationError) as exc:
            detail = exc.detail
            if isinstance(detail, list):
                detail = ' '.join(str(d) for d in detail)
            logger.warning('Ward %s created but bed batch failed: %s', ward.id, detail)
            warning = f'Ward created, but beds were not added: {detail}'
        ward.refresh_from_db()
    return ward, warning


def update_ward(ward: Ward, *, name: Optional[str] = None, department: Optional[Department] = None) -> Ward:
    if name is not None:
        ward.name = name
    if department is not None:
        ward.department = department
    try:
        with transaction.atomic():
            ward.save()
    except IntegrityError:
        raise ConflictError('A ward with this name already exists in the department.', code='ward_exists')
    return ward


def format_department(dept: Department) -> dict:
    return {
        'id': dept.id,
        'name': dept.name,
        'createdAt': dept.created_at.isoformat(),
        'updatedAt': dept.updated_at.isoformat(),
    }


def format_ward(ward: Ward) -> dict:
    return {
        'id': ward.id,
        'name': ward.name,
        'departmentId': ward.department_id,
        'departmentName': ward.department.name if ward.department_id else None,
        'bedCount': ward.bed_count,
        'occupiedBeds': ward.occupied_beds,
        'createdAt': ward.created_at.isoformat(),
        'updatedAt': ward.updated_at.isoformat(),
    }

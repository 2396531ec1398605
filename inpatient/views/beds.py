"""
Bed endpoints.

Occupancy is owned by the admission workflow: ``isTaken`` can be given
when a bed is created, but an update may not flip it on a bed that an
admission currently holds.
"""
from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..models import Bed, Ward
from ..permissions import AdminOrReadOnly, IsAdminRole
from ..serializers.bed import BedBatchSerializer, BedItemSerializer, BedListQuerySerializer, BedWriteSerializer
from ..services import dashboard
from ..services.audit import log_action
from ..services.beds import (
    batch_create_items,
    batch_create_sequential,
    create_bed,
    delete_bed,
    format_bed,
    update_bed,
)


def _ward(ward_id: int) -> Ward:
    ward = Ward.objects.filter(id=ward_id).first()
    if not ward:
        raise ValidationError({'wardId': ['Ward does not exist.']})
    return ward


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, AdminOrReadOnly])
def beds(request):
    """List beds or create one.

    ``GET ?wardId=`` restricts to a ward; ``GET ?wardId=&bedNo=`` looks up
    a single bed and returns it as an object (404 when absent).
    """
    if request.method == 'GET':
        q = BedListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        ward_id = q.validated_data.get('wardId')
        bed_no = q.validated_data.get('bedNo')
        qs = Bed.objects.order_by('ward_id', 'id')
        if bed_no:
            if not ward_id:
                raise ValidationError({'wardId': ['wardId is required with bedNo.']})
            bed = qs.filter(ward_id=ward_id, bed_no=bed_no).first()
            if not bed:
                raise NotFound('bed not found')
            return Response(format_bed(bed))
        if ward_id:
            qs = qs.filter(ward_id=ward_id)
        return Response([format_bed(b) for b in qs])

    s = BedWriteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    bed = create_bed(ward=_ward(vd['wardId']), bed_no=vd['bedNo'], is_taken=vd['isTaken'])
    log_action(user=request.user, action='bed_create', object_type='bed', object_id=bed.id)
    dashboard.invalidate()
    return Response(format_bed(bed), status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def beds_batch(request, ward_id: int):
    """Create many beds in one ward, all or nothing.

    Accepts either ``{"count": N, "prefix": "B-", "isTaken": false}`` for
    sequential labels, or a list of ``{"bedNo", "isTaken"}`` items.
    """
    ward = get_object_or_404(Ward, pk=ward_id)
    if isinstance(request.data, list):
        s = BedItemSerializer(data=request.data, many=True)
        s.is_valid(raise_exception=True)
        created = batch_create_items(ward, s.validated_data)
    else:
        s = BedBatchSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        vd = s.validated_data
        created = batch_create_sequential(ward, count=vd['count'], prefix=vd.get('prefix') or None,
                                          is_taken=vd['isTaken'])
    log_action(user=request.user, action='bed_batch_create', object_type='ward', object_id=ward.id,
               detail={'count': len(created)})
    dashboard.invalidate()
    return Response([format_bed(b) for b in created], status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, AdminOrReadOnly])
def bed_detail(request, pk: int):
    bed = get_object_or_404(Bed, pk=pk)
    if request.method == 'GET':
        return Response(format_bed(bed))
    if request.method == 'DELETE':
        delete_bed(bed)
        log_action(user=request.user, action='bed_delete', object_type='bed', object_id=pk)
        dashboard.invalidate()
        return Response(status=status.HTTP_204_NO_CONTENT)

    s = BedWriteSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    bed = update_bed(
        bed,
        bed_no=vd.get('bedNo'),
        ward=_ward(vd['wardId']) if 'wardId' in vd else None,
        is_taken=vd.get('isTaken'),
    )
    log_action(user=request.user, action='bed_update', object_type='bed', object_id=bed.id)
    dashboard.invalidate()
    return Response(format_bed(bed))

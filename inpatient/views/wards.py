"""
Ward endpoints.

``bedCount`` and ``occupiedBeds`` in the responses are display aggregates
kept in step with the bed registry.  Creating a ward may also provision a
batch of beds; when that batch fails the ward is kept and the response
carries a ``warning``.
"""
from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..models import Department, Ward
from ..permissions import AdminOrReadOnly
from ..serializers.ward import WardListQuerySerializer, WardWriteSerializer
from ..services import dashboard
from ..services.audit import log_action
from ..services.beds import format_bed
from ..services.wards import create_ward, delete_ward, format_ward, update_ward


def _department(dept_id: int) -> Department:
    dept = Department.objects.filter(id=dept_id).first()
    if not dept:
        raise ValidationError({'departmentId': ['Department does not exist.']})
    return dept


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, AdminOrReadOnly])
def wards(request):
    """List wards (optionally ``?departmentId=``) or create one."""
    if request.method == 'GET':
        q = WardListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        qs = Ward.objects.select_related('department').order_by('department__name', 'name')
        dept_id = q.validated_data.get('departmentId')
        if dept_id:
            qs = qs.filter(department_id=dept_id)
        return Response([format_ward(w) for w in qs])

    s = WardWriteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    ward, warning = create_ward(name=vd['name'], department=_department(vd['departmentId']), beds=vd.get('beds'))
    log_action(user=request.user, action='ward_create', object_type='ward', object_id=ward.id,
               detail={'beds': ward.bed_count, 'warning': warning})
    dashboard.invalidate()
    payload = format_ward(ward)
    if warning:
        payload['warning'] = warning
    return Response(payload, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, AdminOrReadOnly])
def ward_detail(request, pk: int):
    ward = get_object_or_404(Ward.objects.select_related('department'), pk=pk)
    if request.method == 'GET':
        return Response(format_ward(ward))
    if request.method == 'DELETE':
        delete_ward(ward)
        log_action(user=request.user, action='ward_delete', object_type='ward', object_id=pk)
        dashboard.invalidate()
        return Response(status=status.HTTP_204_NO_CONTENT)

    s = WardWriteSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    dept = _department(vd['departmentId']) if 'departmentId' in vd else None
    update_ward(ward, name=vd.get('name'), department=dept)
    log_action(user=request.user, action='ward_update', object_type='ward', object_id=ward.id)
    return Response(format_ward(ward))


@api_view(['GET'])
@permission_classes([IsAuthenticated, AdminOrReadOnly])
def ward_beds(request, pk: int):
    ward = get_object_or_404(Ward, pk=pk)
    return Response([format_bed(b) for b in ward.beds.order_by('id')])

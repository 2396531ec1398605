"""
Department endpoints.

Any staff member may list departments; only administrators create,
rename or delete them.  A department that still has wards cannot be
deleted.
"""
from __future__ import annotations

from django.db import IntegrityError, transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..exceptions import ConflictError
from ..models import Department
from ..permissions import AdminOrReadOnly
from ..serializers.ward import DepartmentSerializer
from ..services.audit import log_action
from ..services.wards import delete_department, format_department


def _save(dept: Department) -> None:
    try:
        with transaction.atomic():
            dept.save()
    except IntegrityError:
        raise ConflictError('A department with this name already exists.', code='department_exists')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, AdminOrReadOnly])
def departments(request):
    if request.method == 'GET':
        return Response([format_department(d) for d in Department.objects.order_by('name')])

    s = DepartmentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    dept = Department(name=s.validated_data['name'])
    _save(dept)
    log_action(user=request.user, action='department_create', object_type='department', object_id=dept.id)
    return Response(format_department(dept), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, AdminOrReadOnly])
def department_detail(request, pk: int):
    dept = get_object_or_404(Department, pk=pk)
    if request.method == 'GET':
        return Response(format_department(dept))
    if request.method == 'DELETE':
        delete_department(dept)
        log_action(user=request.user, action='department_delete', object_type='department', object_id=pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    s = DepartmentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    dept.name = s.validated_data['name']
    _save(dept)
    log_action(user=request.user, action='department_update', object_type='department', object_id=dept.id)
    return Response(format_department(dept))

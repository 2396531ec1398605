"""
Staff management endpoints.

Administrators create, edit and deactivate staff accounts and maintain
doctor profiles (licence number and specializations).  ``DELETE`` on a
user deactivates the account; rows are never removed.  Specializations
and the fixed role list are readable by any staff member.
"""
from __future__ import annotations

from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..models import Specialization, User
from ..permissions import AdminOrReadOnly, IsAdminRole, IsClinicalRole
from ..serializers.staff import (
    DoctorDetailSerializer,
    SpecializationSerializer,
    UserListQuerySerializer,
    UserWriteSerializer,
)
from ..services.audit import log_action
from ..services.staff import (
    create_specialization,
    create_user,
    deactivate_user,
    delete_specialization,
    format_specialization,
    format_user,
    rename_specialization,
    set_doctor_detail,
    update_user,
    username_taken,
)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def users(request):
    """List staff (``?role=``, ``?active=``, ``?q=``) or create an account."""
    if request.method == 'GET':
        q = UserListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        vd = q.validated_data
        qs = User.objects.prefetch_related('specializations').order_by('username')
        if vd.get('role'):
            qs = qs.filter(role=vd['role'])
        if vd.get('active') is not None:
            qs = qs.filter(is_active=vd['active'])
        if vd.get('q'):
            qs = qs.filter(
                Q(username__icontains=vd['q']) | Q(first_name__icontains=vd['q']) | Q(last_name__icontains=vd['q'])
            )
        return Response([format_user(u) for u in qs])

    s = UserWriteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    user = create_user(request.user, s.validated_data)
    return Response(format_user(user), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_detail(request, pk: int):
    user = get_object_or_404(User, pk=pk)
    if request.method == 'GET':
        return Response(format_user(user))
    if request.method == 'DELETE':
        deactivate_user(request.user, user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    s = UserWriteSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    return Response(format_user(update_user(request.user, user, s.validated_data)))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_by_username(request, username: str):
    return Response(format_user(get_object_or_404(User, username__iexact=username)))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def username_availability(request, username: str):
    return Response({'username': username, 'taken': username_taken(username)})


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsAdminRole])
def doctor_detail(request, pk: int):
    """``{"licenseNo": ..., "specializationIds": [...]}`` for a doctor account."""
    user = get_object_or_404(User, pk=pk)
    if request.method == 'PUT':
        s = DoctorDetailSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        user = set_doctor_detail(
            request.user, user,
            license_no=s.validated_data.get('licenseNo'),
            specialization_ids=s.validated_data.get('specializationIds'),
        )
    return Response(format_user(user))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsClinicalRole])
def roles(request):
    return Response([{'name': value, 'label': label} for value, label in User.ROLE_CHOICES])


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, AdminOrReadOnly])
def specializations(request):
    if request.method == 'GET':
        return Response([format_specialization(s) for s in Specialization.objects.order_by('name')])

    s = SpecializationSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    spec = create_specialization(s.validated_data['name'])
    log_action(user=request.user, action='specialization_create', object_type='specialization', object_id=spec.id)
    return Response(format_specialization(spec), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, AdminOrReadOnly])
def specialization_detail(request, pk: int):
    spec = get_object_or_404(Specialization, pk=pk)
    if request.method == 'GET':
        return Response(format_specialization(spec))
    if request.method == 'DELETE':
        delete_specialization(spec)
        log_action(user=request.user, action='specialization_delete', object_type='specialization', object_id=pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    s = SpecializationSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    spec = rename_specialization(spec, s.validated_data['name'])
    log_action(user=request.user, action='specialization_update', object_type='specialization', object_id=spec.id)
    return Response(format_specialization(spec))

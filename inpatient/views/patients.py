"""
Patient registry endpoints.

Any staff role may register and update patients.  Deleting is a soft
delete (``isActive=false``) limited to nurses and administrators, and is
refused for a patient who is already archived or currently admitted.
"""
from __future__ import annotations

from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..models import Patient, User
from ..permissions import IsClinicalRole
from ..serializers.patient import PatientListQuerySerializer, PatientWriteSerializer
from ..services import dashboard
from ..services.admissions import latest_status, sort_by_recency
from ..services.patients import (
    archive_patient,
    create_patient,
    find_by_nic,
    format_patient,
    get_patient,
    update_patient,
)


def _detail(patient: Patient) -> dict:
    history = sort_by_recency(patient.admissions.all())
    return format_patient(patient, latest_status=latest_status(history), with_latest=True)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsClinicalRole])
def patients(request):
    """List patients or register a new one.

    ``?nic=`` returns the single matching patient (404 when absent);
    combine with ``active=true`` to ignore archived records.  ``?q=``
    filters by name or NIC.
    """
    if request.method == 'GET':
        q = PatientListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        vd = q.validated_data
        active = vd.get('active')
        if vd.get('nic'):
            return Response(_detail(find_by_nic(vd['nic'], active_only=bool(active))))
        qs = Patient.objects.order_by('-created_at', '-id')
        if active is not None:
            qs = qs.filter(is_active=active)
        if vd.get('q'):
            qs = qs.filter(Q(full_name__icontains=vd['q']) | Q(nic__icontains=vd['q']))
        return Response([format_patient(p) for p in qs])

    s = PatientWriteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    patient = create_patient(request.user, s.validated_data)
    dashboard.invalidate()
    return Response(_detail(patient), status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsClinicalRole])
def active_patients(request):
    """Patients that can be queued or admitted."""
    qs = Patient.objects.filter(is_active=True).order_by('full_name', 'id')
    return Response([format_patient(p) for p in qs])


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsClinicalRole])
def active_patient_detail(request, pk: int):
    return Response(_detail(get_patient(pk, active_only=True)))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsClinicalRole])
def patient_by_nic(request, nic: str):
    active_only = request.query_params.get('active', '').lower() in {'1', 'true', 'yes'}
    return Response(_detail(find_by_nic(nic, active_only=active_only)))


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsClinicalRole])
def patient_detail(request, pk: int):
    patient = get_object_or_404(Patient, pk=pk)
    if request.method == 'GET':
        return Response(_detail(patient))
    if request.method == 'DELETE':
        if request.user.role not in (User.ROLE_ADMIN, User.ROLE_NURSE):
            raise PermissionDenied('only nurses and administrators may archive patients')
        archive_patient(request.user, patient)
        dashboard.invalidate()
        return Response(status=status.HTTP_204_NO_CONTENT)

    s = PatientWriteSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    patient = update_patient(request.user, patient, s.validated_data)
    return Response(_detail(patient))

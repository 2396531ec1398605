"""
Prescription endpoints.

Doctors write prescriptions; every staff role can read them.  IPD
prescriptions are tied to an ACTIVE admission for any change.
"""
from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..models import Prescription
from ..permissions import IsClinicalRole
from ..serializers.prescription import PrescriptionListQuerySerializer, PrescriptionWriteSerializer
from ..services.prescriptions import (
    create_prescription,
    delete_prescription,
    format_detail,
    format_summary,
    list_prescriptions,
    update_prescription,
)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsClinicalRole])
def prescriptions(request):
    """``GET`` lists summaries, or full details with items for ``?admissionId=``."""
    if request.method == 'GET':
        q = PrescriptionListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        admission_id = q.validated_data.get('admissionId')
        rows = list_prescriptions(admission_id=admission_id)
        fmt = format_detail if admission_id else format_summary
        return Response([fmt(rx) for rx in rows])

    s = PrescriptionWriteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    rx = create_prescription(request.user, s.validated_data)
    return Response(format_detail(rx), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsClinicalRole])
def prescription_detail(request, pk: int):
    rx = get_object_or_404(Prescription.objects.select_related('doctor'), pk=pk)
    if request.method == 'GET':
        return Response(format_summary(rx))
    if request.method == 'DELETE':
        delete_prescription(request.user, rx)
        return Response(status=status.HTTP_204_NO_CONTENT)

    s = PrescriptionWriteSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    rx = update_prescription(request.user, rx, s.validated_data)
    return Response(format_detail(rx))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsClinicalRole])
def prescription_items(request, pk: int):
    rx = get_object_or_404(Prescription.objects.select_related('doctor').prefetch_related('items'), pk=pk)
    return Response(format_detail(rx))

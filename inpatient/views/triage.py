"""
Triage endpoints.

``predict`` stores an immutable triage record; there is no update or
delete.  The desk actions that follow a prediction (queue, admit now,
send home) live here as well so the triage board has one place to talk to.
"""
from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..models import Patient, TriageRecord
from ..permissions import IsClinicalRole, IsNurseOrAdmin
from ..serializers.triage import (
    DispositionSerializer,
    TriageAdmitSerializer,
    TriageHistoryQuerySerializer,
    TriageRequestSerializer,
)
from ..services import dashboard, handoff
from ..services.admissions import format_admission
from ..services.queue import format_entry
from ..services.triage import VITAL_RANGES, format_triage, history


def _patient(patient_id) -> Patient | None:
    if not patient_id:
        return None
    patient = Patient.objects.filter(id=patient_id).first()
    if not patient:
        raise ValidationError({'patientId': ['Patient does not exist.']})
    return patient


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsClinicalRole])
def predict(request):
    s = TriageRequestSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    vitals = {k: vd[k] for k in VITAL_RANGES}
    record = handoff.predict(request.user, vitals, patient=_patient(vd.get('patientId')), name=vd.get('name', ''))
    return Response(format_triage(record), status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsClinicalRole])
def triage_history(request):
    """Newest first; ``?severity=CRITICAL|NON_CRITICAL``, ``?q=``, ``?patientId=``."""
    q = TriageHistoryQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    records = history(severity=vd.get('severity'), search=vd.get('q'), patient_id=vd.get('patientId'))
    return Response([format_triage(r) for r in records])


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsClinicalRole])
def triage_detail(request, pk: int):
    return Response(format_triage(get_object_or_404(TriageRecord, pk=pk)))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsNurseOrAdmin])
def admit_from_triage(request):
    """Admit the patient straight into a bed, closing any pending queue entry."""
    s = TriageAdmitSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    patient = _patient(vd['patientId'])
    admission = handoff.admit_from_triage(request.user, patient, vd['bedId'], vd.get('queueId'))
    dashboard.invalidate()
    return Response(format_admission(admission), status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsClinicalRole])
def dispose(request):
    """Close the patient's pending queue entry as OUTPATIENT or CANCELLED."""
    s = DispositionSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    entry = handoff.dispose(request.user, _patient(vd['patientId']), vd['disposition'], vd.get('reason', ''))
    dashboard.invalidate()
    return Response(format_entry(entry))

"""
Triage queue endpoints.

Entries are listed for display with CRITICAL first.  Every change is
pushed to WebSocket listeners on ``ws/queue/`` after the transaction
commits.
"""
from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..models import Patient, PatientQueue
from ..permissions import IsClinicalRole
from ..serializers.queue import QueueCreateSerializer, QueueListQuerySerializer, QueueUpdateSerializer
from ..services import dashboard, handoff
from ..services.queue import delete_entry, format_entry, list_entries, update_entry


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsClinicalRole])
def patient_queue(request):
    if request.method == 'GET':
        q = QueueListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        entries = list_entries(status=q.validated_data.get('status'), patient_id=q.validated_data.get('patientId'))
        return Response([format_entry(e) for e in entries])

    s = QueueCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    patient = Patient.objects.filter(id=s.validated_data['patientId']).first()
    if not patient:
        raise ValidationError({'patientId': ['Patient does not exist.']})
    entry = handoff.enqueue(request.user, patient, s.validated_data.get('triageId'))
    dashboard.invalidate()
    return Response(format_entry(entry), status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated, IsClinicalRole])
def patient_queue_detail(request, pk: int):
    """Read an entry with its transition history, move it, or delete it.

    ``PUT`` takes ``{"status": ..., "reason": ...}``; administrators may
    also send ``priority`` to override it on a pending entry.  The ``admitted`` flag
    cannot be set here; it is set when the patient is admitted to a bed.
    ``DELETE`` is for administrators and only for closed entries.
    """
    entry = get_object_or_404(PatientQueue.objects.select_related('patient', 'triage'), pk=pk)
    if request.method == 'GET':
        return Response(format_entry(entry, with_history=True))
    if request.method == 'DELETE':
        delete_entry(request.user, entry)
        dashboard.invalidate()
        return Response(status=status.HTTP_204_NO_CONTENT)

    s = QueueUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    entry = update_entry(request.user, entry, status=vd.get('status'), priority=vd.get('priority'),
                         reason=vd['reason'])
    dashboard.invalidate()
    return Response(format_entry(entry, with_history=True))

"""
Admission workflow endpoints.

The server is the only judge of bed exclusivity and of the one active
admission per patient rule.  A failed precondition comes back as a 409
with a specific ``error.code`` (``bed_taken``, ``active_admission_exists``,
``admission_not_active`` ...) and changes nothing.
"""
from __future__ import annotations

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from ..models import Patient, PatientAdmission
from ..permissions import IsClinicalRole, IsDoctorRole, IsNurseOrAdmin
from ..serializers.admission import (
    AdmissionCreateSerializer,
    AdmissionListQuerySerializer,
    AdmissionUpdateSerializer,
    ConfirmDischargeSerializer,
    DischargeSerializer,
)
from ..services import dashboard
from ..services.admissions import (
    admit,
    doctor_discharge,
    edit_admission,
    format_admission,
    has_active_admission,
    list_admissions,
    nurse_confirm_discharge,
    stats,
)


def _fresh(admission_id: int) -> PatientAdmission:
    return PatientAdmission.objects.select_related('patient', 'bed', 'bed__ward').get(id=admission_id)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsClinicalRole])
def admissions(request):
    """List admissions or admit a patient.

    ``GET ?tab=ACTIVE|PENDING|DISCHARGED|ALL`` where PENDING means doctor
    discharged and awaiting nurse confirmation, and DISCHARGED means
    confirmed.  ``POST {patientId, bedId, queueId?}`` admits (nurse or
    admin).
    """
    if request.method == 'GET':
        q = AdmissionListQuerySerializer(data=request.query_params)
        q.is_valid(raise_exception=True)
        vd = q.validated_data
        rows = list_admissions(tab=vd['tab'], patient_id=vd.get('patientId'), ward_id=vd.get('wardId'))
        return Response([format_admission(a) for a in rows])

    s = AdmissionCreateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    admission = admit(request.user, patient_id=vd['patientId'], bed_id=vd['bedId'], queue_id=vd.get('queueId'))
    dashboard.invalidate()
    return Response(format_admission(_fresh(admission.id)), status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsClinicalRole])
def admission_stats(request):
    return Response(stats())


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsClinicalRole])
def has_active(request, patient_id: int):
    get_object_or_404(Patient, pk=patient_id)
    return Response({'patientId': patient_id, 'hasActive': has_active_admission(patient_id)})


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsClinicalRole])
def admission_detail(request, pk: int):
    """``PUT {bedId?, status?, dischargeNotes?}`` edits an ACTIVE admission.

    A new ``bedId`` moves the patient; ``status=DISCHARGED`` discharges in
    the same step and needs the doctor role.
    """
    admission = get_object_or_404(PatientAdmission, pk=pk)
    if request.method == 'GET':
        return Response(format_admission(_fresh(admission.id)))

    s = AdmissionUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    edit_admission(
        request.user,
        admission.id,
        bed_id=vd.get('bedId'),
        discharge=vd.get('status') == PatientAdmission.STATUS_DISCHARGED,
        notes=vd.get('dischargeNotes', ''),
    )
    dashboard.invalidate()
    return Response(format_admission(_fresh(admission.id)))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsDoctorRole])
def discharge(request, pk: int):
    get_object_or_404(PatientAdmission, pk=pk)
    s = DischargeSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    doctor_discharge(request.user, pk, notes=s.validated_data['dischargeNotes'])
    dashboard.invalidate()
    return Response(format_admission(_fresh(pk)))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsNurseOrAdmin])
def confirm_discharge(request, pk: int):
    get_object_or_404(PatientAdmission, pk=pk)
    s = ConfirmDischargeSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    nurse_confirm_discharge(request.user, pk, notes=s.validated_data['notes'])
    dashboard.invalidate()
    return Response(format_admission(_fresh(pk)))

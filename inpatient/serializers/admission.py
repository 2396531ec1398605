import bleach
from rest_framework import serializers

from inpatient.models import PatientAdmission
from inpatient.services.admissions import TABS


def _clean(v):
    return bleach.clean((v or '').strip(), strip=True)


class AdmissionCreateSerializer(serializers.Serializer):
    patientId = serializers.IntegerField()
    bedId = serializers.IntegerField()
    queueId = serializers.IntegerField(required=False, allow_null=True)


class AdmissionUpdateSerializer(serializers.Serializer):
    """Edit of an active admission: a bed move and/or a discharge."""
    bedId = serializers.IntegerField(required=False, allow_null=True)
    status = serializers.ChoiceField(
        choices=[PatientAdmission.STATUS_ACTIVE, PatientAdmission.STATUS_DISCHARGED], required=False
    )
    dischargeNotes = serializers.CharField(required=False, allow_blank=True)

    def validate_dischargeNotes(self, v):
        return _clean(v)

    def validate(self, attrs):
        if attrs.get('status') == PatientAdmission.STATUS_DISCHARGED and not attrs.get('dischargeNotes'):
            raise serializers.ValidationError({'dischargeNotes': ['Discharge notes are required.']})
        return attrs


class DischargeSerializer(serializers.Serializer):
    dischargeNotes = serializers.CharField()

    def validate_dischargeNotes(self, v):
        v = _clean(v)
        if not v:
            raise serializers.ValidationError('Discharge notes are required.')
        return v


class ConfirmDischargeSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_notes(self, v):
        return _clean(v)


class AdmissionListQuerySerializer(serializers.Serializer):
    tab = serializers.ChoiceField(choices=list(TABS), required=False, default='ALL')
    patientId = serializers.IntegerField(required=False)
    wardId = serializers.IntegerField(required=False)

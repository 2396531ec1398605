import bleach
from rest_framework import serializers

from inpatient.models import Prescription


def _clean(v):
    return bleach.clean((v or '').strip(), strip=True)


class PrescriptionItemSerializer(serializers.Serializer):
    medicineName = serializers.CharField(max_length=255)
    dosage = serializers.CharField(required=False, allow_blank=True, max_length=100, default='')
    frequency = serializers.CharField(required=False, allow_blank=True, max_length=100, default='')
    durationDays = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    instructions = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_medicineName(self, v):
        v = _clean(v)
        if not v:
            raise serializers.ValidationError('Medicine name is required.')
        return v

    def validate_instructions(self, v):
        return _clean(v)


class PrescriptionWriteSerializer(serializers.Serializer):
    admissionId = serializers.IntegerField(required=False, allow_null=True)
    queueId = serializers.IntegerField(required=False, allow_null=True)
    type = serializers.ChoiceField(choices=[t for t, _ in Prescription.TYPE_CHOICES], required=False)
    status = serializers.ChoiceField(choices=[s for s, _ in Prescription.STATUS_CHOICES], required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
    items = PrescriptionItemSerializer(many=True, required=False)

    def validate_notes(self, v):
        return _clean(v)


class PrescriptionListQuerySerializer(serializers.Serializer):
    admissionId = serializers.IntegerField(required=False)

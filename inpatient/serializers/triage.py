from rest_framework import serializers

from inpatient.services.triage import validate_vitals


class TriageRequestSerializer(serializers.Serializer):
    """Vitals for a prediction.  Inclusive bounds are checked against ``VITAL_RANGES``."""
    patientId = serializers.IntegerField(required=False, allow_null=True)
    name = serializers.CharField(required=False, allow_blank=True, max_length=255)
    sex = serializers.IntegerField()
    arrivalMode = serializers.IntegerField()
    injury = serializers.IntegerField()
    mental = serializers.IntegerField()
    pain = serializers.IntegerField()
    age = serializers.IntegerField()
    sbp = serializers.IntegerField()
    dbp = serializers.IntegerField()
    hr = serializers.IntegerField()
    rr = serializers.IntegerField()
    bt = serializers.FloatField()

    def validate(self, attrs):
        validate_vitals(attrs)
        return attrs


class TriageHistoryQuerySerializer(serializers.Serializer):
    severity = serializers.ChoiceField(choices=['ALL', 'CRITICAL', 'NON_CRITICAL'], required=False, default='ALL')
    q = serializers.CharField(required=False, allow_blank=True)
    patientId = serializers.IntegerField(required=False)


class TriageAdmitSerializer(serializers.Serializer):
    patientId = serializers.IntegerField()
    bedId = serializers.IntegerField()
    queueId = serializers.IntegerField(required=False, allow_null=True)


class DispositionSerializer(serializers.Serializer):
    patientId = serializers.IntegerField()
    disposition = serializers.ChoiceField(choices=['OUTPATIENT', 'CANCELLED'])
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)

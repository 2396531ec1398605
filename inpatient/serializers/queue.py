from rest_framework import serializers

from inpatient.models import PatientQueue

STATUSES = [s for s, _ in PatientQueue.STATUS_CHOICES]
PRIORITIES = [p for p, _ in PatientQueue.PRIORITY_CHOICES]


class QueueCreateSerializer(serializers.Serializer):
    patientId = serializers.IntegerField()
    triageId = serializers.IntegerField(required=False, allow_null=True)


class QueueUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=STATUSES, required=False)
    priority = serializers.ChoiceField(choices=PRIORITIES, required=False)
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255, default='')
    admitted = serializers.BooleanField(required=False)

    def validate_admitted(self, v):
        if v:
            raise serializers.ValidationError('Queue entries are marked admitted by the admission workflow.')
        return v

    def validate(self, attrs):
        if 'status' not in attrs and 'priority' not in attrs:
            raise serializers.ValidationError('Provide a status or a priority.')
        return attrs


class QueueListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=STATUSES, required=False)
    patientId = serializers.IntegerField(required=False)

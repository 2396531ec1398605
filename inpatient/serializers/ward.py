import bleach
from rest_framework import serializers

from inpatient.serializers.bed import BedBatchSerializer


def _clean_name(v):
    v = bleach.clean((v or '').strip(), strip=True)
    if not v:
        raise serializers.ValidationError('Name is required.')
    return v


class DepartmentSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)

    def validate_name(self, v):
        return _clean_name(v)


class WardWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    departmentId = serializers.IntegerField()
    beds = BedBatchSerializer(required=False)

    def validate_name(self, v):
        return _clean_name(v)


class WardListQuerySerializer(serializers.Serializer):
    departmentId = serializers.IntegerField(required=False)
